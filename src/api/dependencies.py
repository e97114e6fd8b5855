from functools import lru_cache

from fastapi import Depends, HTTPException

from adapter.external.github_oauth import GitHubOAuthAdapter
from adapter.mongodb.connection import get_mongodb_client
from adapter.mongodb.user_repository import MongoUserRepository
from port.oauth_provider import OAuthProvider
from port.user_repository import UserRepository
from services.auth_service import AuthService
from services.token_service import TokenService
from utils.config import Settings


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


def _get_db(settings: Settings):
    """Get MongoDB database, raising 503 if unavailable."""
    client = get_mongodb_client(settings.mongo_url)
    if client is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return client[settings.database_name]


def get_user_repo(settings: Settings = Depends(get_settings)) -> UserRepository:
    return MongoUserRepository(_get_db(settings))


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings)


def get_auth_service(
    repo: UserRepository = Depends(get_user_repo),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(repo, tokens, settings)


def get_github_provider(settings: Settings = Depends(get_settings)) -> OAuthProvider:
    """GitHub OAuth adapter, or 503 when client credentials are not configured."""
    if not settings.github_enabled:
        raise HTTPException(status_code=503, detail="GitHub login is not configured")
    return GitHubOAuthAdapter(
        client_id=settings.github_client_id,
        client_secret=settings.github_client_secret,
        callback_url=settings.github_callback_url,
    )

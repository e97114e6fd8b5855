"""GitHub OAuth adapter.

Implements OAuthProvider against GitHub's web application flow:
authorize URL → callback code → access token → /user (+ /user/emails).

API Documentation: https://docs.github.com/en/apps/oauth-apps/building-oauth-apps/authorizing-oauth-apps
"""

import logging
from urllib.parse import urlencode

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from domain.model.errors import OAuthError
from domain.model.user import GITHUB_PROVIDER, ExternalIdentity

logger = logging.getLogger(__name__)

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API_BASE_URL = "https://api.github.com"
API_TIMEOUT_SECONDS = 10.0
SCOPE = "user:email"


class GitHubOAuthAdapter:
    """Adapter that turns a GitHub callback code into an ExternalIdentity."""

    name = GITHUB_PROVIDER

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        callback_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self._transport = transport

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "scope": SCOPE,
            "state": state,
        }
        return f"{GITHUB_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> ExternalIdentity:
        """Exchange an authorization code for the GitHub user's identity.

        Raises:
            OAuthError: code rejected, GitHub unreachable, malformed response,
                or no verified email
        """
        try:
            async with httpx.AsyncClient(
                timeout=API_TIMEOUT_SECONDS, transport=self._transport
            ) as client:
                access_token = await self._fetch_access_token(client, code)
                headers = {
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/vnd.github+json",
                }

                response = await _get_with_retry(client, f"{GITHUB_API_BASE_URL}/user", headers)
                response.raise_for_status()
                profile = response.json()

                email = profile.get("email")
                if not email:
                    email = await self._fetch_primary_email(client, headers)
                provider_id = str(profile["id"])

        except httpx.HTTPStatusError as e:
            logger.warning(
                "GitHub API HTTP error",
                extra={"status_code": e.response.status_code, "url": str(e.request.url)},
            )
            raise OAuthError("GitHub authentication failed")
        except httpx.RequestError as e:
            logger.warning("GitHub API request error", extra={"error_type": type(e).__name__})
            raise OAuthError("GitHub is unreachable")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            # Non-JSON body, or JSON without the expected fields
            logger.warning("Unexpected GitHub API response", extra={"error_type": type(e).__name__})
            raise OAuthError("Unexpected response from GitHub")

        if not email:
            raise OAuthError("No email found in GitHub profile")

        first_name, last_name = split_display_name(profile.get("name"), profile.get("login"))
        identity = ExternalIdentity(
            provider=GITHUB_PROVIDER,
            provider_id=provider_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            avatar=profile.get("avatar_url"),
        )
        logger.debug("GitHub identity resolved", extra={"providerId": identity.provider_id})
        return identity

    async def _fetch_access_token(self, client: httpx.AsyncClient, code: str) -> str:
        # Not retried: an authorization code is single-use
        response = await client.post(
            GITHUB_TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "redirect_uri": self.callback_url,
            },
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        data = response.json()

        token = data.get("access_token")
        if not token:
            logger.warning(
                "GitHub rejected authorization code",
                extra={"error": data.get("error"), "description": data.get("error_description")},
            )
            raise OAuthError(data.get("error_description") or "Invalid GitHub authorization code")
        return token

    async def _fetch_primary_email(self, client: httpx.AsyncClient, headers: dict) -> str | None:
        """Pick the primary verified address; fall back to any verified one."""
        response = await _get_with_retry(client, f"{GITHUB_API_BASE_URL}/user/emails", headers)
        response.raise_for_status()
        emails = [e for e in response.json() if e.get("verified")]

        for entry in emails:
            if entry.get("primary"):
                return entry.get("email")
        return emails[0].get("email") if emails else None


def split_display_name(display_name: str | None, login: str | None) -> tuple[str, str]:
    """Best-effort first/last split of a single display name."""
    first, _, rest = (display_name or login or "").strip().partition(" ")
    return first or (login or ""), rest.strip()


# ── HTTP helpers ─────────────────────────────────────────────


@retry(
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=4),
    reraise=True,
)
async def _get_with_retry(client: httpx.AsyncClient, url: str, headers: dict) -> httpx.Response:
    """GET with automatic retry on transient failures."""
    return await client.get(url, headers=headers)

"""In-memory implementation of OAuthProvider for testing."""

from domain.model.errors import OAuthError
from domain.model.user import GITHUB_PROVIDER, ExternalIdentity


class FakeOAuthProvider:
    def __init__(self, name: str = GITHUB_PROVIDER):
        self.name = name
        self.identities: dict[str, ExternalIdentity] = {}
        self.exchanged: list[str] = []

    def add_identity(self, code: str, identity: ExternalIdentity) -> None:
        self.identities[code] = identity

    def authorization_url(self, state: str) -> str:
        return f"https://oauth.example.test/authorize?state={state}"

    async def exchange_code(self, code: str) -> ExternalIdentity:
        self.exchanged.append(code)
        identity = self.identities.get(code)
        if identity is None:
            raise OAuthError("Invalid authorization code")
        return identity

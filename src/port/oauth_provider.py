"""OAuth port: outbound interface for third-party identity providers."""

from typing import Protocol

from domain.model.user import ExternalIdentity


class OAuthProvider(Protocol):
    """Port for exchanging a provider callback for a normalized identity.

    exchange_code() raises OAuthError when the provider rejects the code
    or no verified email can be obtained.
    """

    name: str

    def authorization_url(self, state: str) -> str: ...

    async def exchange_code(self, code: str) -> ExternalIdentity: ...

import logging
from typing import Optional

import requests
from django.conf import settings

from .models import Identity

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """
    The identity provider could not be reached or answered unexpectedly.
    """


class InvalidTokenError(IdentityProviderError):
    """
    The provider rejected the bearer token.
    """


class IdentityProviderClient:
    """
    Resolves bearer tokens against the hosted auth service
    (``GET {url}/auth/v1/user``).
    """
    USER_ENDPOINT = "/auth/v1/user"

    def __init__(self, base_url: str, api_key: str, timeout: float = 5.0, session=None):
        if not base_url or not api_key:
            raise IdentityProviderError("Identity provider URL/key not configured. See .env")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_user(self, token: str) -> dict:
        try:
            resp = self.session.get(
                f"{self.base_url}{self.USER_ENDPOINT}",
                headers={
                    "Authorization": f"Bearer {token}",
                    "apikey": self.api_key,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Identity provider unreachable: %s", e)
            raise IdentityProviderError("Identity provider unreachable") from e

        if resp.status_code in (400, 401, 403, 404):
            raise InvalidTokenError("Token rejected by identity provider")
        if not resp.ok:
            logger.error("Identity provider returned %s", resp.status_code)
            raise IdentityProviderError(f"Identity provider error ({resp.status_code})")

        try:
            payload = resp.json()
        except ValueError as e:
            raise IdentityProviderError("Malformed identity provider response") from e

        if not isinstance(payload, dict) or not payload.get("id"):
            raise InvalidTokenError("No user bound to token")
        return payload

    def resolve(self, token: str) -> Identity:
        return Identity.from_provider_payload(self.fetch_user(token))


_client: Optional[IdentityProviderClient] = None


def get_identity_client() -> IdentityProviderClient:
    global _client
    if _client is None:
        _client = IdentityProviderClient(
            base_url=settings.IDENTITY_PROVIDER_URL,
            api_key=settings.IDENTITY_PROVIDER_KEY,
            timeout=settings.IDENTITY_PROVIDER_TIMEOUT,
        )
    return _client

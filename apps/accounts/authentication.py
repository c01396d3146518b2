import hmac
import logging

from django.conf import settings
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from .models import Identity
from .services import IdentityProviderError, InvalidTokenError, get_identity_client

logger = logging.getLogger(__name__)

WWW_AUTHENTICATE = 'Bearer realm="api"'


class AdminSecretAuthentication(BaseAuthentication):
    """
    Shared-secret bypass for trusted server-to-server or bootstrap calls.
    A missing or wrong ``x-admin-secret`` header falls through to the next
    authenticator.
    """
    header = "HTTP_X_ADMIN_SECRET"

    def authenticate(self, request):
        provided = request.META.get(self.header)
        expected = getattr(settings, "ADMIN_SECRET", None)
        if not provided or not expected:
            return None

        if not hmac.compare_digest(provided.encode(), expected.encode()):
            logger.warning("Rejected x-admin-secret from %s", request.META.get("REMOTE_ADDR"))
            return None

        return (Identity.trusted_service(), None)

    def authenticate_header(self, request):
        return WWW_AUTHENTICATE


class IdentityProviderAuthentication(BaseAuthentication):
    """
    ``Authorization: Bearer <token>`` resolved against the identity provider.
    """
    keyword = b"bearer"

    def authenticate(self, request):
        auth = get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword:
            return None

        if len(auth) != 2:
            raise exceptions.AuthenticationFailed("Unauthorized: Invalid Token")

        try:
            token = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed("Unauthorized: Invalid Token")

        try:
            identity = get_identity_client().resolve(token)
        except InvalidTokenError:
            raise exceptions.AuthenticationFailed("Unauthorized: Invalid Token")
        except IdentityProviderError:
            raise exceptions.AuthenticationFailed("Unauthorized: Could not verify token")

        return (identity, token)

    def authenticate_header(self, request):
        return WWW_AUTHENTICATE

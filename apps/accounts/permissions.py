from rest_framework.permissions import AllowAny, BasePermission


class IsAuthenticatedIdentity(BasePermission):
    """
    Auth gate: any caller resolved by the identity provider.
    """
    message = "Unauthorized: No Token Provided"

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)


class IsStoreAdmin(BasePermission):
    """
    Admin gate: shared secret or an identity carrying the admin role.
    """
    message = "Forbidden: Admin Privileges Required"

    def has_permission(self, request, view):
        return bool(
            request.user
            and request.user.is_authenticated
            and getattr(request.user, "is_admin", False)
        )


class PublicActionsMixin:
    """
    ViewSet mixin: actions listed in ``public_actions`` skip authentication
    entirely (a stale token must not break catalog browsing or checkout);
    every other action uses the view's authenticators and permissions.
    """
    public_actions = ()

    def _requested_action(self):
        # Authenticators are built before DRF assigns ``self.action``.
        request = getattr(self, "request", None)
        if request is None:
            return getattr(self, "action", None)
        return (getattr(self, "action_map", None) or {}).get(request.method.lower())

    def get_authenticators(self):
        if self._requested_action() in self.public_actions:
            return []
        return super().get_authenticators()

    def get_permissions(self):
        if self.action in self.public_actions:
            return [AllowAny()]
        return super().get_permissions()

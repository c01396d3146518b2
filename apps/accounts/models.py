"""
Identity types for callers resolved by the external identity provider.

No user table lives in this database: the provider owns accounts, and the
API only needs to know who is calling and whether they may administer the
store. Both are decided once, at authentication time, and carried on
``request.user`` for the rest of the request.
"""
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings
from django.db import models


class Role(models.TextChoices):
    CUSTOMER = "CUSTOMER", "Customer"
    ADMIN = "ADMIN", "Admin"
    SERVICE = "SERVICE", "Trusted Service"


@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str]
    role: str = Role.CUSTOMER
    metadata: dict = field(default_factory=dict)

    # DRF / Django user protocol
    is_authenticated = True
    is_anonymous = False

    @property
    def pk(self):
        return self.id

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SERVICE)

    @classmethod
    def from_provider_payload(cls, payload: dict) -> "Identity":
        email = payload.get("email")
        metadata = payload.get("user_metadata") or {}
        admin_emails = {e.lower() for e in getattr(settings, "ADMIN_EMAILS", [])}

        is_admin = metadata.get("role") == "admin" or (
            email is not None and email.lower() in admin_emails
        )
        return cls(
            id=str(payload["id"]),
            email=email,
            role=Role.ADMIN if is_admin else Role.CUSTOMER,
            metadata=metadata,
        )

    @classmethod
    def trusted_service(cls) -> "Identity":
        return cls(id="admin-secret", email=None, role=Role.SERVICE)

    def __str__(self):
        return self.email or self.id

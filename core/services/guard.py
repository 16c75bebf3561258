"""
Ownership and self-targeting checks run before any mutating transaction.
"""

from __future__ import annotations

from core.errors import Forbidden, ValidationIssue
from core.models import User


_SELF_TARGET_MESSAGES = {
    "follow": "Users cannot follow themselves",
    "unfollow": "Users cannot unfollow themselves",
}


class AuthorizationGuard:
    def require_owner(self, identity: User, resource, *, message: str = "Forbidden") -> None:
        owner = getattr(resource, "owner_username", None)
        if owner is None or owner != identity.username:
            raise Forbidden(message)

    def require_not_self(self, identity: User, target_username: str, action: str = "follow") -> None:
        if target_username == identity.username:
            raise ValidationIssue(
                _SELF_TARGET_MESSAGES.get(action, f"Users cannot {action} themselves"),
                field="target_username",
                error_type="self_target",
            )

"""Request-scoped actor context.

The identity collaborator supplies who is acting and in which role.  The
context is passed explicitly into every engine operation; nothing reads
identity from module-level state.
"""

import enum
from dataclasses import dataclass

from tto_protocol.errors import PermissionDeniedError


class ActorRole(str, enum.Enum):
    INTERVIEWER = "interviewer"
    ADMIN = "admin"


@dataclass(frozen=True)
class ActorContext:
    """``{user_id, role}`` of the current caller."""

    user_id: str
    role: ActorRole = ActorRole.INTERVIEWER

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    def require_admin(self, action: str) -> None:
        """Raise ``PermissionDeniedError`` unless the actor is an admin."""
        if not self.is_admin:
            raise PermissionDeniedError(
                f"Administrator authority required to {action} "
                f"(actor={self.user_id}, role={self.role.value})"
            )

    def can_access(self, interviewer_id: str) -> bool:
        """Admins see every session; interviewers only their own."""
        return self.is_admin or self.user_id == interviewer_id

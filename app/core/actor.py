"""
Actor - Award Assessment Platform
app/core/actor.py

Identity of the caller. Authentication happens upstream; the gateway
forwards the authenticated user in request headers and the core trusts the
role as given. The actor is passed explicitly into every service call.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from app.core.exceptions import PermissionDeniedException
from app.models.enumerations import ReviewStage, Role

ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPERADMIN})


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: Role
    name: Optional[str] = None
    jury_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_jury(self) -> bool:
        return self.role == Role.JURI

    @property
    def effective_jury_id(self) -> int:
        """Juror identity used for jury score rows; defaults to the user id."""
        return self.jury_id if self.jury_id is not None else self.user_id

    def require_admin(self, action: str) -> None:
        if not self.is_admin:
            raise PermissionDeniedException(f"Role {self.role.value} cannot {action}")

    def require_stage_reviewer(self, stage: ReviewStage) -> None:
        """Admins review every stage; jurors only jury_scoring."""
        if self.is_admin:
            return
        if stage == ReviewStage.JURY_SCORING and self.is_jury:
            return
        raise PermissionDeniedException(
            f"Role {self.role.value} cannot review the {stage.value} stage"
        )

    def require_jury(self, action: str) -> None:
        if not (self.is_jury or self.is_admin):
            raise PermissionDeniedException(f"Role {self.role.value} cannot {action}")


def get_actor(
    x_user_id: int = Header(..., description="Authenticated user id"),
    x_user_role: Role = Header(..., description="PESERTA, ADMIN, SUPERADMIN or JURI"),
    x_user_name: Optional[str] = Header(default=None, description="Display name"),
    x_jury_id: Optional[int] = Header(default=None, description="Juror id when it differs from the user id"),
) -> Actor:
    """FastAPI dependency building the Actor from gateway headers."""
    return Actor(user_id=x_user_id, role=x_user_role, name=x_user_name, jury_id=x_jury_id)

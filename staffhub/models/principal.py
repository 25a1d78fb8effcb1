from typing import Optional
from pydantic import BaseModel, ConfigDict

from .base import PyObjectId


class Principal(BaseModel):
    """The authenticated caller, as handed in by the auth layer."""

    model_config = ConfigDict(frozen=True)

    id: PyObjectId
    organization_id: Optional[PyObjectId] = None
    organization_role: Optional[str] = None
    role: Optional[str] = None
    user_type: Optional[str] = None
    first_name: str = ""
    last_name: str = ""

    @classmethod
    def from_user(cls, user: dict) -> "Principal":
        return cls(
            id=user["_id"],
            organization_id=user.get("organization_id"),
            organization_role=user.get("organization_role"),
            role=user.get("role"),
            user_type=user.get("user_type"),
            first_name=user.get("first_name", ""),
            last_name=user.get("last_name", ""),
        )

    @property
    def effective_role(self) -> Optional[str]:
        return self.organization_role or self.role or self.user_type

    def _has_kind(self, kind: str) -> bool:
        return self.user_type == kind or kind in (self.organization_role or "")

    @property
    def is_admin(self) -> bool:
        return self._has_kind("admin")

    @property
    def is_client(self) -> bool:
        return self._has_kind("client")

    @property
    def is_vendor(self) -> bool:
        return self._has_kind("vendor")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class UserRole(str, Enum):
    SUPERADMIN = "superadmin"
    MANAGER = "manager"
    STAFF = "staff"


class CurrentUser(BaseModel):
    """Caller identity taken from the bearer token."""
    id: str
    name: str = ""
    role: UserRole
    branch_id: Optional[str] = None

    @property
    def is_superadmin(self) -> bool:
        return self.role == UserRole.SUPERADMIN

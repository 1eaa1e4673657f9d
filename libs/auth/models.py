import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Role(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"
    STAFF = "staff"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class AuthUser(BaseModel):
    """
    Represents an authenticated caller, decoded from the bearer token.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: Role = Role.BUYER

    @property
    def is_back_office(self) -> bool:
        return self.role in (Role.STAFF, Role.ADMIN, Role.SUPERADMIN)

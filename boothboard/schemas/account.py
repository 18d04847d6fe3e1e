"""
Account, session and profile schemas
"""
from enum import Enum

from pydantic import Field

from boothboard.schemas.base import DomainModel, PayloadModel


class Role(str, Enum):
    """Roles a profile can hold."""

    ADMIN = "admin"
    BOOTH_STAFF = "booth_staff"


class Account(DomainModel):
    """
    Authenticated identity as returned by the auth service
    """
    id: str = Field(..., min_length=1, description="Opaque account ID")
    email: str = Field(..., description="Sign-in email")


class AuthSession(DomainModel):
    """
    Active session for an account
    """
    access_token: str = Field(..., description="Bearer token for store requests")
    account: Account


class Profile(DomainModel):
    """
    Role-and-name record paired one-to-one with an Account

    Attributes:
        id: Same value as Account.id
        full_name: Display name
        role: admin or booth_staff
    """
    id: str = Field(..., min_length=1)
    full_name: str = Field(default="")
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class ProfileCreate(PayloadModel):
    """
    Schema for the fallback profile insert done after sign-up
    """
    id: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    role: Role

"""
Authentication and user profile schemas.

Request/response models for registration, login and mirrored user profiles.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict, EmailStr, Field, model_validator

from backend.src.models.base import BaseModel, IDMixin, TimestampMixin

UserStatus = Literal["active", "inactive", "banned"]


class RegisterRequest(BaseModel):
    """Request to create an account."""

    email: EmailStr = Field(..., description="Account email", examples=["ana@stockroom.io"])
    password: str = Field(..., description="Account password", min_length=6, max_length=128)
    username: Optional[str] = Field(None, description="Display name", min_length=1, max_length=255)


class LoginRequest(BaseModel):
    """Request to obtain a token for an existing account."""

    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., description="Account password", min_length=1)


class UserUpdateRequest(BaseModel):
    """
    Partial profile update.

    Only supplied fields change. Display name and photo changes are also
    pushed to the identity provider.
    """

    model_config = ConfigDict(extra="forbid")

    username: Optional[str] = Field(None, description="Display name", min_length=1, max_length=255)
    photo_url: Optional[str] = Field(
        None, description="Profile photo URL", min_length=1, max_length=2048
    )
    status: Optional[UserStatus] = Field(None, description="Account status")

    @model_validator(mode="after")
    def reject_nulls(self) -> "UserUpdateRequest":
        """A supplied field must carry a value."""
        nulls = sorted(f for f in self.model_fields_set if getattr(self, f) is None)
        if nulls:
            raise ValueError(f"Fields may not be null: {', '.join(nulls)}")
        return self


class UserResponse(IDMixin, TimestampMixin):
    """Local user profile."""

    firebase_uid: str = Field(..., description="Identity provider account ID")
    email: str = Field(..., description="Account email")
    username: Optional[str] = Field(None, description="Display name")
    photo_url: Optional[str] = Field(None, description="Profile photo URL")
    email_verified_at: Optional[datetime] = Field(None, description="When the email was verified")
    status: UserStatus = Field(..., description="Account status")


class UserPayload(BaseModel):
    """``data`` of user endpoints."""

    user: UserResponse


class AuthPayload(UserPayload):
    """``data`` of register and login."""

    token: str = Field(..., description="Identity provider custom token")


# Export
__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "UserUpdateRequest",
    "UserResponse",
    "UserPayload",
    "AuthPayload",
]

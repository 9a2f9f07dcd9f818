"""Pydantic schemas for authentication."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from src.auth.permissions import UserRole


class AuthenticatedUser(BaseModel):
    """Identity extracted from a verified access token."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: UserRole
    email: str | None = None

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v: str | UserRole) -> str | UserRole:
        """Accept role claims in any case ("Student", "INSTRUCTOR")."""
        if isinstance(v, str) and not isinstance(v, UserRole):
            return v.lower()
        return v

    @classmethod
    def from_payload(cls, payload: dict) -> "AuthenticatedUser":
        """Build from a decoded token payload."""
        return cls(
            id=payload["sub"],
            role=payload["role"],
            email=payload.get("email"),
        )

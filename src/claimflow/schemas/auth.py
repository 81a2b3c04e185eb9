# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Authentication schemas."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.config import get_settings


class CallerContext(BaseModel):
    """Authenticated caller, resolved once per request and passed to services."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    subject_id: str = Field(..., min_length=1, description="Stable user identifier")
    roles: frozenset[str] = Field(
        default_factory=frozenset, description="Upper-cased role names"
    )
    email: str | None = Field(default=None, description="User email, best effort")

    @field_validator("roles", mode="before")
    @classmethod
    def normalize_roles(cls, v: object) -> frozenset[str]:
        """Role names are compared case-insensitively."""
        if v is None:
            return frozenset()
        if isinstance(v, str):
            v = [v]
        return frozenset(str(role).strip().upper() for role in v if str(role).strip())

    def has_role(self, role: str) -> bool:
        return role.strip().upper() in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(get_settings().admin_role)


class TokenData(BaseModel):
    """Locally issued token, used by development tooling and tests."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    access_token: str
    token_type: str = "bearer"
    expires_in: int

# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Notification domain models."""

from datetime import datetime
from enum import Enum

from beartype import beartype
from pydantic import Field, model_validator

from .base import BaseModelConfig


class NotificationType(str, Enum):
    """What a notification is about."""

    CLAIM_APPROVED = "CLAIM_APPROVED"
    CLAIM_REJECTED = "CLAIM_REJECTED"
    CLAIM_UNDER_REVIEW = "CLAIM_UNDER_REVIEW"
    CLAIM_SETTLED = "CLAIM_SETTLED"
    SYSTEM_NOTIFICATION = "SYSTEM_NOTIFICATION"


class NotificationStatus(str, Enum):
    """Read state. READ never reverts to UNREAD."""

    UNREAD = "UNREAD"
    READ = "READ"


@beartype
class NotificationDraft(BaseModelConfig):
    """A rendered notification that has not been stored yet."""

    recipient_id: str = Field(..., min_length=1)
    claim_number: str | None = Field(default=None)
    message: str = Field(..., min_length=1)
    type: NotificationType
    dedup_key: str | None = Field(
        default=None, description="Collapses redelivered events when set"
    )


@beartype
class Notification(BaseModelConfig):
    """Stored notification."""

    id: int = Field(..., ge=1)
    recipient_id: str = Field(..., min_length=1)
    claim_number: str | None = None
    message: str
    type: NotificationType
    status: NotificationStatus = NotificationStatus.UNREAD
    created_at: datetime
    read_at: datetime | None = None

    @model_validator(mode="after")
    def validate_read_state(self) -> "Notification":
        if (self.read_at is not None) != (self.status == NotificationStatus.READ):
            raise ValueError("read_at must be set exactly when status is READ")
        return self

    @property
    def is_read(self) -> bool:
        return self.status == NotificationStatus.READ


@beartype
class UnreadCount(BaseModelConfig):
    unread_count: int = Field(..., ge=0)


@beartype
class MarkAllReadResult(BaseModelConfig):
    updated: int = Field(..., ge=0, description="Notifications switched to READ")

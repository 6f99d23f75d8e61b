"""
Notification Models

System notifications are a read-through projection of the raw records.
They are keyed by (user_id, type, context_id): deriving them again updates
the existing row instead of inserting a new one.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class NotificationType(str, Enum):
    FINAL_PAYMENT = "FINAL_PAYMENT"
    INCOME_ENDING = "INCOME_ENDING"


class NotificationSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class NotificationMetadata(BaseModel):
    """
    Localisation keys and parameters for the presentation layer.

    Serialized with camelCase keys (titleKey, messageKey, ...) so stored
    JSON stays readable by existing clients.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title_key: Optional[str] = None
    message_key: Optional[str] = None
    params: dict[str, Any] = Field(default_factory=dict)
    entity_type: Optional[str] = Field(
        default=None,
        pattern="^(donation|income|system)$",
    )
    entity_id: Optional[str] = None
    severity: NotificationSeverity = NotificationSeverity.INFO


class Notification(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    user_id: str
    type: NotificationType
    context_id: Optional[str] = Field(
        default=None,
        description="ID of the record this notification is about"
    )
    title: str
    message: str
    metadata: Optional[NotificationMetadata] = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def key(self) -> tuple[str, NotificationType, Optional[str]]:
        """Upsert key."""
        return (self.user_id, self.type, self.context_id)


class NotificationList(BaseModel):
    notifications: list[Notification] = Field(default_factory=list)
    unread_count: int = Field(default=0, ge=0)

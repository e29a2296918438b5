"""Realtime change notification models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ChangeOperation(str, Enum):
    """Row operation carried by a change event."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """A change to a row of a conversation-scoped table."""

    operation: ChangeOperation
    table: str
    conversation_id: UUID
    row: dict[str, Any] = Field(default_factory=dict)
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

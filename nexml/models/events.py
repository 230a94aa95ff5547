"""
Event Models

Tagged records appended to the marketplace event log whenever an
operation commits.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from nexml.models.base import MarketModel, ensure_utc, generate_id, utc_now


class EventType(str, Enum):
    """Types of events emitted by the registry."""

    MODEL_UPLOADED = "model.uploaded"
    MODEL_UPDATED = "model.updated"
    MODEL_PURCHASED = "model.purchased"
    MODEL_RENTED = "model.rented"
    MODEL_RATED = "model.rated"
    DID_SET = "profile.did_set"


class MarketEvent(MarketModel):
    """A committed state change, in serialization order."""

    id: str = Field(default_factory=generate_id)
    sequence: int = Field(ge=0, description="Position in the event log")
    type: EventType
    caller: str = Field(description="Identity that triggered the change")
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp", mode="before")
    @classmethod
    def convert_datetime(cls, v):
        return ensure_utc(v)

"""
NexML Marketplace Models

Pydantic models for all registry entities.
"""

from nexml.models.base import MarketModel, generate_id
from nexml.models.events import EventType, MarketEvent
from nexml.models.marketplace import (
    MAX_SCORE,
    MIN_SCORE,
    ModelListing,
    PaymentKind,
    PaymentRecord,
    Rating,
    UserProfile,
)

__all__ = [
    "MarketModel",
    "generate_id",
    "EventType",
    "MarketEvent",
    "MAX_SCORE",
    "MIN_SCORE",
    "ModelListing",
    "PaymentKind",
    "PaymentRecord",
    "Rating",
    "UserProfile",
]

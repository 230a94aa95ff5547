"""
Base Models and Common Types

Foundation classes for all marketplace models.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict


def ensure_utc(value: Any) -> Any:
    """Attach UTC to naive datetimes and parse ISO strings read back from storage."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def utc_now() -> datetime:
    return datetime.now(UTC)


class MarketModel(BaseModel):
    """Base model for all marketplace entities with common configuration.

    Strings are kept verbatim: content references, comments and DIDs are
    opaque to the registry.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        validate_assignment=True,
        use_enum_values=True,
    )


# ═══════════════════════════════════════════════════════════════
# ID GENERATION
# ═══════════════════════════════════════════════════════════════


def generate_id() -> str:
    """Generate a new UUID string."""
    return str(uuid4())

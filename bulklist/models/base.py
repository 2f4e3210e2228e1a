"""Base models and mixins."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin(SQLModel):
    """Mixin for created_at/updated_at timestamps (UTC, timezone-aware)."""

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class DomainModel(BaseModel):
    """Base for in-memory pipeline models.

    Instances are frozen. Pipeline code never assigns fields; it builds an
    updated copy with :meth:`replace` and swaps it into the batch.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def replace(self, **changes: Any) -> Any:
        """Return a validated copy of this model with ``changes`` applied."""
        values = {name: getattr(self, name) for name in type(self).model_fields}
        values.update(changes)
        return type(self).model_validate(values)

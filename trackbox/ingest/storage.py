"""Persistence model for the append-only geofence event store."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class Base(DeclarativeBase):
    """Base declarative class for Trackbox models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reject naive datetimes and bind aware values in UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            msg = "eventTime must be timezone aware"
            raise ValueError(msg)
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Return stored datetimes as aware UTC values."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class Event(Base):
    """One persisted geofence transition.

    Rows are only ever inserted. Column names keep the camelCase shape other
    Trackbox components read.
    """

    __tablename__ = "events"
    __table_args__ = (Index("ix_events_entity_time", "entityId", "eventTime"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event: Mapped[str] = mapped_column(Text)
    entity_type: Mapped[str] = mapped_column("entityType", String(32))
    entity_id: Mapped[str] = mapped_column("entityId", Text)
    target_entity_type: Mapped[str] = mapped_column("targetEntityType", String(32))
    target_entity_id: Mapped[str] = mapped_column("targetEntityId", Text)
    event_time: Mapped[dt.datetime] = mapped_column("eventTime", UTCDateTime())


async def init_event_storage(engine: AsyncEngine) -> None:
    """Create the events table if it is absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

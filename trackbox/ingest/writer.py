"""Append domain events to the event store."""

from __future__ import annotations

import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from trackbox.ingest.errors import PersistError
from trackbox.ingest.storage import Event

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from trackbox.ingest.mapper import DomainEvent


class EventStoreWriter:
    """Insert-only writer for :class:`~trackbox.ingest.storage.Event` rows.

    Each call opens its own session from the injected factory, so concurrent
    pipeline runs never share a session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for writes."""
        self._session_factory = session_factory

    async def write(self, event: DomainEvent) -> int:
        """Insert ``event`` as a new row and return its primary key.

        Every call creates a row, including for events identical to ones
        already stored.

        Raises
        ------
        PersistError
            If the store is unreachable or rejects the insert.

        """
        row = Event(
            event=event.event,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            target_entity_type=event.target_entity_type,
            target_entity_id=event.target_entity_id,
            event_time=event.event_time,
        )
        try:
            async with self._session_factory() as session, session.begin():
                session.add(row)
                await session.flush()
                row_id = row.id
        except (SQLAlchemyError, OSError) as exc:
            raise PersistError.write_failed(exc) from exc
        return row_id

"""Behavioural coverage for the transition ingest pipeline."""

from __future__ import annotations

import asyncio
import datetime as dt
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from trackbox.ingest import (
    ChangeNotifier,
    Event,
    EventStoreWriter,
    IngestionPipeline,
    init_event_storage,
)
from trackbox.transport.errors import TransportError
from tests.helpers.fakes import RecordingPublisher, inbound, transition_payload

if typ.TYPE_CHECKING:
    from pathlib import Path

    from trackbox.ingest import RunOutcome

TOPIC = "owntracks/bob/tablet/event"


class IngestContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    database_url: str
    publisher: RecordingPublisher
    outcome: RunOutcome


@scenario("../transition_ingest.feature", "A transition is persisted and announced")
def test_transition_persisted_and_announced() -> None:
    """Wrap the pytest-bdd scenario."""


@scenario("../transition_ingest.feature", "A redelivered transition is ignored")
def test_redelivered_transition_ignored() -> None:
    """Redeliveries should not be stored."""


@scenario("../transition_ingest.feature", "Location updates are ignored")
def test_location_updates_ignored() -> None:
    """Only transitions are stored."""


@scenario("../transition_ingest.feature", "A lost notification does not undo the write")
def test_lost_notification_keeps_write() -> None:
    """Notification failures are best effort."""


@pytest.fixture
def ingest_context(tmp_path: Path) -> IngestContext:
    """Provision a scenario-scoped database location and publisher."""
    return {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'ingest.db'}",
        "publisher": RecordingPublisher(),
    }


async def _with_factory[T](
    ingest_context: IngestContext,
    action: typ.Callable[[async_sessionmaker], typ.Awaitable[T]],
) -> T:
    # NullPool keeps connections from leaking between asyncio.run loops.
    engine = create_async_engine(ingest_context["database_url"], poolclass=NullPool)
    try:
        return await action(async_sessionmaker(engine, expire_on_commit=False))
    finally:
        await engine.dispose()


def _publish(ingest_context: IngestContext, payload: bytes, *, dup: bool) -> None:
    async def _run(factory: async_sessionmaker) -> RunOutcome:
        pipeline = IngestionPipeline(
            EventStoreWriter(factory), ChangeNotifier(ingest_context["publisher"])
        )
        return await pipeline.handle(inbound(payload, topic=TOPIC, is_duplicate=dup))

    ingest_context["outcome"] = asyncio.run(_with_factory(ingest_context, _run))


def _stored_events(ingest_context: IngestContext) -> list[Event]:
    async def _load(factory: async_sessionmaker) -> list[Event]:
        async with factory() as session:
            return list((await session.scalars(select(Event))).all())

    return asyncio.run(_with_factory(ingest_context, _load))


@given("an empty event store")
def given_empty_store(ingest_context: IngestContext) -> None:
    """Create the events table."""
    engine = create_async_engine(ingest_context["database_url"], poolclass=NullPool)

    async def _init() -> None:
        try:
            await init_event_storage(engine)
        finally:
            await engine.dispose()

    asyncio.run(_init())


@given("the broker never acknowledges notifications")
def given_unacknowledged(ingest_context: IngestContext) -> None:
    """Make every notification publish time out."""
    ingest_context["publisher"] = RecordingPublisher(
        error=TransportError.publish_timeout("trackbox/bob/events", 5.0)
    )


@when(
    parsers.parse(
        'bob\'s tablet publishes an enter transition for "{fence}" at {tst:d}'
    )
)
def publish_transition(ingest_context: IngestContext, fence: str, tst: int) -> None:
    """Deliver a first-time transition message."""
    _publish(ingest_context, transition_payload(desc=fence, tst=tst), dup=False)


@when(
    parsers.parse(
        'bob\'s tablet redelivers an enter transition for "{fence}" at {tst:d}'
    )
)
def redeliver_transition(ingest_context: IngestContext, fence: str, tst: int) -> None:
    """Deliver a transition flagged as a redelivery."""
    _publish(ingest_context, transition_payload(desc=fence, tst=tst), dup=True)


@when("bob's tablet publishes a location update")
def publish_location(ingest_context: IngestContext) -> None:
    """Deliver a non-transition message."""
    _publish(
        ingest_context,
        b'{"_type":"location","tst":1700000000,"lat":52.1,"lon":4.3}',
        dup=False,
    )


@then("the event store contains exactly one event")
def assert_one_event(ingest_context: IngestContext) -> None:
    """Exactly one row was written."""
    count = len(_stored_events(ingest_context))
    assert count == 1, f"expected 1 event row but found {count}"


@then("the event store contains no events")
def assert_no_events(ingest_context: IngestContext) -> None:
    """Nothing was written."""
    assert _stored_events(ingest_context) == []


@then(
    parsers.parse('the stored event is bob entering "{fence}" at "{event_time}"')
)
def assert_stored_event(
    ingest_context: IngestContext, fence: str, event_time: str
) -> None:
    """The stored row carries the mapped fields."""
    [event] = _stored_events(ingest_context)
    assert event.event == "enter"
    assert event.entity_type == "user"
    assert event.entity_id == "bob"
    assert event.target_entity_type == "geofence"
    assert event.target_entity_id == fence
    assert event.event_time == dt.datetime.fromisoformat(event_time)


@then(parsers.parse('a "{payload}" notification is published to "{topic}"'))
def assert_notification(ingest_context: IngestContext, payload: str, topic: str) -> None:
    """Exactly one acknowledged notification was sent."""
    assert ingest_context["publisher"].published == [(topic, payload.encode(), 1)]


@then("no notification is published")
def assert_no_notification(ingest_context: IngestContext) -> None:
    """The publisher was never called."""
    assert ingest_context["publisher"].published == []


@then("the run is reported as successful")
def assert_success(ingest_context: IngestContext) -> None:
    """The write, not the notification, decides success."""
    outcome = ingest_context["outcome"]
    assert outcome.succeeded
    assert not outcome.notified

import itertools
import os
import sys
import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import MagicMock

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

import pytest
from fastapi.testclient import TestClient

from agreed_time import db
from agreed_time.config import Settings
from agreed_time.main import create_app
from agreed_time.models.events import Event, EventSlot, Participant
from agreed_time.scheduling.intervals import TimeRange
from agreed_time.scheduling.results import ResultRow


class FakeStore:
    """In-memory stand-in for the `agreed_time.db` event functions."""

    FUNCTIONS = (
        "insert_event",
        "insert_event_slots",
        "fetch_event_slots",
        "get_event_by_public_token",
        "get_event_by_organizer_token",
        "lock_event_by_public_token",
        "close_event",
        "fetch_event_states",
        "get_organizer_name",
        "count_participants",
        "insert_participant",
        "get_participant_by_token",
        "update_participant",
        "replace_availability",
        "fetch_participant_availability",
        "fetch_results_rows",
    )

    def __init__(self):
        self.events: dict[uuid.UUID, Event] = {}
        self.slots: list[EventSlot] = []
        self.participants: list[Participant] = []
        self.availability: dict[int, list[TimeRange]] = {}
        self._ids = itertools.count(1)

    def install(self, monkeypatch) -> None:
        for name in self.FUNCTIONS:
            monkeypatch.setattr(db, name, getattr(self, name))

    def _by_public(self, token):
        return next((e for e in self.events.values() if e.public_token == token), None)

    async def insert_event(self, conn, title, description, time_zone, slot_duration):
        now = datetime.now(UTC)
        event = Event(
            id=uuid.uuid4(),
            public_token=str(uuid.uuid4()),
            organizer_token=str(uuid.uuid4()),
            title=title,
            description=description,
            time_zone=time_zone,
            slot_duration=slot_duration,
            created_at=now,
            updated_at=now,
        )
        self.events[event.id] = event
        return event

    async def insert_event_slots(self, conn, event_id, slots):
        for s in slots:
            self.slots.append(
                EventSlot(id=next(self._ids), event_id=event_id, start_at=s.start_at, end_at=s.end_at)
            )

    async def fetch_event_slots(self, conn, event_id):
        return sorted((s for s in self.slots if s.event_id == event_id), key=lambda s: s.start_at)

    async def get_event_by_public_token(self, conn, public_token):
        return self._by_public(public_token)

    async def get_event_by_organizer_token(self, conn, organizer_token):
        return next((e for e in self.events.values() if e.organizer_token == organizer_token), None)

    async def lock_event_by_public_token(self, conn, public_token):
        return self._by_public(public_token)

    async def close_event(self, conn, organizer_token):
        event = await self.get_event_by_organizer_token(conn, organizer_token)
        if event is None:
            return None
        closed = event.model_copy(update={"state": "closed", "updated_at": datetime.now(UTC)})
        self.events[event.id] = closed
        return closed

    async def fetch_event_states(self, conn, public_tokens):
        return {e.public_token: e.state for e in self.events.values() if e.public_token in public_tokens}

    async def get_organizer_name(self, conn, event_id):
        return next(p.name for p in self.participants if p.event_id == event_id and p.is_organizer)

    async def count_participants(self, conn, event_id):
        return sum(1 for p in self.participants if p.event_id == event_id)

    async def insert_participant(self, conn, event_id, name, is_organizer, comment):
        participant = Participant(
            id=next(self._ids),
            event_id=event_id,
            token=uuid.uuid4(),
            name=name,
            is_organizer=is_organizer,
            comment=comment,
        )
        self.participants.append(participant)
        return participant

    async def get_participant_by_token(self, conn, event_id, token):
        return next(
            (p for p in self.participants if p.event_id == event_id and p.token == token), None
        )

    async def update_participant(self, conn, participant_id, name, comment):
        for i, p in enumerate(self.participants):
            if p.id == participant_id:
                self.participants[i] = p.model_copy(update={"name": name, "comment": comment})
                return self.participants[i]
        raise KeyError(participant_id)

    async def replace_availability(self, conn, participant_id, ranges):
        self.availability[participant_id] = list(ranges)

    async def fetch_participant_availability(self, conn, participant_id):
        return sorted(self.availability.get(participant_id, []))

    async def fetch_results_rows(self, conn, event_id):
        members = [p for p in self.participants if p.event_id == event_id]
        members.sort(key=lambda p: not p.is_organizer)
        rows = []
        for p in members:
            ranges = sorted(self.availability.get(p.id, []))
            if not ranges:
                rows.append(ResultRow(p.id, p.name, p.is_organizer, p.comment, None, None))
            for r in ranges:
                rows.append(ResultRow(p.id, p.name, p.is_organizer, p.comment, r.start_at, r.end_at))
        return rows


@pytest.fixture
def settings():
    s = Settings()
    s.features.database = False
    s.features.cleanup = False
    s.rate_limit.enabled = False
    return s


@pytest.fixture
def fake_conn(monkeypatch):
    conn = MagicMock(name="conn")

    @asynccontextmanager
    async def _fake_connection():
        yield conn

    monkeypatch.setattr(db, "transaction", _fake_connection)
    monkeypatch.setattr(db, "connection", _fake_connection)
    return conn


@pytest.fixture
def store(monkeypatch, fake_conn):
    fake = FakeStore()
    fake.install(monkeypatch)
    return fake


@pytest.fixture
def client(settings, store):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c

"""Event, participant and availability persistence.

Every function takes an open connection so callers decide the transaction
boundary: reads use `db.connection()`, multi-statement writes run inside
one `db.transaction()`.
"""

import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import psycopg

from agreed_time.models.events import Event, EventSlot, Participant
from agreed_time.scheduling.intervals import TimeRange
from agreed_time.scheduling.results import ResultRow

_EVENT_COLUMNS = (
    "id, public_token, organizer_token, title, description, state, "
    "time_zone, slot_duration, created_at, updated_at"
)
_PARTICIPANT_COLUMNS = "id, event_id, token, name, is_organizer, comment"


def generate_token() -> str:
    return str(uuid.uuid4())


def _event_from_row(row: tuple[Any, ...]) -> Event:
    return Event(
        id=row[0],
        public_token=row[1],
        organizer_token=row[2],
        title=row[3],
        description=row[4],
        state=row[5],
        time_zone=row[6],
        slot_duration=row[7],
        created_at=row[8].astimezone(UTC),
        updated_at=row[9].astimezone(UTC),
    )


def _participant_from_row(row: tuple[Any, ...]) -> Participant:
    return Participant(
        id=row[0],
        event_id=row[1],
        token=row[2],
        name=row[3],
        is_organizer=row[4],
        comment=row[5],
    )


async def insert_event(
    conn: psycopg.AsyncConnection,
    title: str,
    description: str | None,
    time_zone: str | None,
    slot_duration: int,
) -> Event:
    now = datetime.now(UTC)
    cur = await conn.execute(
        f"""INSERT INTO events ({_EVENT_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, 'open', %s, %s, %s, %s)
            RETURNING {_EVENT_COLUMNS}""",
        (uuid.uuid4(), generate_token(), generate_token(), title, description,
         time_zone, slot_duration, now, now),
    )
    return _event_from_row(await cur.fetchone())


async def insert_event_slots(
    conn: psycopg.AsyncConnection, event_id: UUID, slots: Iterable[TimeRange]
) -> None:
    async with conn.cursor() as cur:
        await cur.executemany(
            "INSERT INTO event_slots (event_id, start_at, end_at) VALUES (%s, %s, %s)",
            [(event_id, s.start_at, s.end_at) for s in slots],
        )


async def fetch_event_slots(conn: psycopg.AsyncConnection, event_id: UUID) -> list[EventSlot]:
    cur = await conn.execute(
        "SELECT id, event_id, start_at, end_at FROM event_slots WHERE event_id = %s ORDER BY start_at",
        (event_id,),
    )
    return [
        EventSlot(id=row[0], event_id=row[1], start_at=row[2].astimezone(UTC), end_at=row[3].astimezone(UTC))
        async for row in cur
    ]


async def get_event_by_public_token(conn: psycopg.AsyncConnection, public_token: str) -> Event | None:
    cur = await conn.execute(
        f"SELECT {_EVENT_COLUMNS} FROM events WHERE public_token = %s",
        (public_token,),
    )
    row = await cur.fetchone()
    return _event_from_row(row) if row else None


async def get_event_by_organizer_token(conn: psycopg.AsyncConnection, organizer_token: str) -> Event | None:
    cur = await conn.execute(
        f"SELECT {_EVENT_COLUMNS} FROM events WHERE organizer_token = %s",
        (organizer_token,),
    )
    row = await cur.fetchone()
    return _event_from_row(row) if row else None


async def lock_event_by_public_token(conn: psycopg.AsyncConnection, public_token: str) -> Event | None:
    """Fetch the event and hold its row lock until the transaction ends.

    Concurrent writers for the same event queue behind this lock, which
    makes participant counting and inserting one atomic step.
    """
    cur = await conn.execute(
        f"SELECT {_EVENT_COLUMNS} FROM events WHERE public_token = %s FOR UPDATE",
        (public_token,),
    )
    row = await cur.fetchone()
    return _event_from_row(row) if row else None


async def close_event(conn: psycopg.AsyncConnection, organizer_token: str) -> Event | None:
    cur = await conn.execute(
        f"""UPDATE events SET state = 'closed', updated_at = NOW()
            WHERE organizer_token = %s
            RETURNING {_EVENT_COLUMNS}""",
        (organizer_token,),
    )
    row = await cur.fetchone()
    return _event_from_row(row) if row else None


async def fetch_event_states(conn: psycopg.AsyncConnection, public_tokens: list[str]) -> dict[str, str]:
    cur = await conn.execute(
        "SELECT public_token, state FROM events WHERE public_token = ANY(%s)",
        (public_tokens,),
    )
    return {row[0]: row[1] async for row in cur}


async def get_organizer_name(conn: psycopg.AsyncConnection, event_id: UUID) -> str:
    cur = await conn.execute(
        "SELECT name FROM participants WHERE event_id = %s AND is_organizer = true LIMIT 1",
        (event_id,),
    )
    row = await cur.fetchone()
    return row[0] if row else ""


async def count_participants(conn: psycopg.AsyncConnection, event_id: UUID) -> int:
    cur = await conn.execute(
        "SELECT COUNT(*) FROM participants WHERE event_id = %s",
        (event_id,),
    )
    row = await cur.fetchone()
    return int(row[0]) if row else 0


async def insert_participant(
    conn: psycopg.AsyncConnection,
    event_id: UUID,
    name: str,
    is_organizer: bool,
    comment: str | None,
) -> Participant:
    cur = await conn.execute(
        f"""INSERT INTO participants (event_id, token, name, is_organizer, comment)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {_PARTICIPANT_COLUMNS}""",
        (event_id, uuid.uuid4(), name, is_organizer, comment),
    )
    return _participant_from_row(await cur.fetchone())


async def get_participant_by_token(
    conn: psycopg.AsyncConnection, event_id: UUID, token: UUID
) -> Participant | None:
    cur = await conn.execute(
        f"SELECT {_PARTICIPANT_COLUMNS} FROM participants WHERE token = %s AND event_id = %s",
        (token, event_id),
    )
    row = await cur.fetchone()
    return _participant_from_row(row) if row else None


async def update_participant(
    conn: psycopg.AsyncConnection, participant_id: int, name: str, comment: str | None
) -> Participant:
    cur = await conn.execute(
        f"""UPDATE participants SET name = %s, comment = %s, updated_at = NOW()
            WHERE id = %s
            RETURNING {_PARTICIPANT_COLUMNS}""",
        (name, comment, participant_id),
    )
    return _participant_from_row(await cur.fetchone())


async def replace_availability(
    conn: psycopg.AsyncConnection, participant_id: int, ranges: Iterable[TimeRange]
) -> None:
    """Delete then insert; run it inside a transaction so the swap is never half done."""
    await conn.execute("DELETE FROM availabilities WHERE participant_id = %s", (participant_id,))
    rows = [(participant_id, r.start_at, r.end_at) for r in ranges]
    if rows:
        async with conn.cursor() as cur:
            await cur.executemany(
                "INSERT INTO availabilities (participant_id, start_at, end_at) VALUES (%s, %s, %s)",
                rows,
            )


async def fetch_participant_availability(
    conn: psycopg.AsyncConnection, participant_id: int
) -> list[TimeRange]:
    cur = await conn.execute(
        "SELECT start_at, end_at FROM availabilities WHERE participant_id = %s ORDER BY start_at",
        (participant_id,),
    )
    return [TimeRange(row[0].astimezone(UTC), row[1].astimezone(UTC)) async for row in cur]


async def fetch_results_rows(conn: psycopg.AsyncConnection, event_id: UUID) -> list[ResultRow]:
    """Participants left-joined with their availability.

    Ordered organizer first, then participants in creation order, then
    ranges by start.
    """
    cur = await conn.execute(
        """SELECT p.id, p.name, p.is_organizer, p.comment, a.start_at, a.end_at
           FROM participants p
           LEFT JOIN availabilities a ON p.id = a.participant_id
           WHERE p.event_id = %s
           ORDER BY p.is_organizer DESC, p.created_at ASC, p.id ASC, a.start_at ASC""",
        (event_id,),
    )
    return [
        ResultRow(
            participant_id=row[0],
            name=row[1],
            is_organizer=row[2],
            comment=row[3],
            start_at=row[4].astimezone(UTC) if row[4] else None,
            end_at=row[5].astimezone(UTC) if row[5] else None,
        )
        async for row in cur
    ]


async def delete_expired_events(conn: psycopg.AsyncConnection, retention_days: int) -> int:
    """Delete events created more than `retention_days` ago; children cascade."""
    cur = await conn.execute(
        "DELETE FROM events WHERE created_at < NOW() - make_interval(days => %s::int)",
        (retention_days,),
    )
    return cur.rowcount

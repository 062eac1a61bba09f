"""Participant admission against the per-event cap."""

import logging
from uuid import UUID

import psycopg

from agreed_time import db
from agreed_time.errors import NotFoundError, ParticipantLimitError
from agreed_time.models.events import Event, Participant

logger = logging.getLogger(__name__)


async def admit_participant(
    conn: psycopg.AsyncConnection,
    event: Event,
    name: str,
    comment: str | None,
    participant_token: UUID | None,
    max_participants: int,
) -> Participant:
    """Return the participant a submission writes to, creating it if new.

    A submission carrying a participant token of this event updates that
    participant in place and never touches the count. Anything else is a
    new participant and is refused with `ParticipantLimitError` once the
    event already has `max_participants`.

    Must run inside the transaction that locked the event row
    (`db.lock_event_by_public_token`) so that concurrent submissions for
    the same event cannot both pass the count check.
    """
    if participant_token is not None:
        existing = await db.get_participant_by_token(conn, event.id, participant_token)
        if existing is None:
            raise NotFoundError("Participant not found")
        return await db.update_participant(conn, existing.id, name, comment)

    count = await db.count_participants(conn, event.id)
    if count >= max_participants:
        logger.warning(
            "Participant limit reached event=%s count=%d max=%d", event.id, count, max_participants
        )
        raise ParticipantLimitError(max_participants)

    participant = await db.insert_participant(conn, event.id, name, False, comment)
    logger.info("Admitted participant id=%s event=%s (%d/%d)", participant.id, event.id, count + 1, max_participants)
    return participant

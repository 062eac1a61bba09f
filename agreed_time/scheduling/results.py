"""Grouping of joined participant/availability rows into per-participant results."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import NamedTuple

from agreed_time.scheduling.intervals import TimeRange


class ResultRow(NamedTuple):
    """One (participant, availability range) pair from the results join.

    Participants without availability appear once with both range columns
    set to None.
    """

    participant_id: int
    name: str
    is_organizer: bool
    comment: str | None
    start_at: datetime | None
    end_at: datetime | None


@dataclass
class ParticipantResult:
    participant_id: int
    name: str
    is_organizer: bool
    comment: str | None
    ranges: list[TimeRange] = field(default_factory=list)


@dataclass
class EventResults:
    participants: list[ParticipantResult]

    @property
    def total_participants(self) -> int:
        return len(self.participants)


def aggregate_results(rows: Iterable[ResultRow]) -> EventResults:
    """Group `rows` by participant id, keeping the order rows arrive in.

    The rows must already be ordered organizer first, then by participant
    creation, then by range start; nothing is re-sorted here. Participants
    are keyed by id, never by display name, so two people who picked the
    same name stay separate.
    """
    by_id: dict[int, ParticipantResult] = {}
    for row in rows:
        entry = by_id.get(row.participant_id)
        if entry is None:
            entry = ParticipantResult(
                participant_id=row.participant_id,
                name=row.name,
                is_organizer=row.is_organizer,
                comment=row.comment,
            )
            by_id[row.participant_id] = entry
        if row.start_at is not None and row.end_at is not None:
            entry.ranges.append(TimeRange(row.start_at, row.end_at))
    return EventResults(participants=list(by_id.values()))

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field, field_validator, model_validator

from agreed_time.scheduling.intervals import TimeRange

EventState = Literal["open", "closed"]

TITLE_MAX = 100
DESCRIPTION_MAX = 1000
NAME_MAX = 50
COMMENT_MAX = 500


class Event(BaseModel):
    id: UUID
    public_token: str
    organizer_token: str
    title: str
    description: str | None = None
    state: EventState = "open"
    time_zone: str | None = None
    slot_duration: int
    created_at: datetime
    updated_at: datetime

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"


class EventSlot(BaseModel):
    id: int
    event_id: UUID
    start_at: datetime
    end_at: datetime


class Participant(BaseModel):
    id: int
    event_id: UUID
    token: UUID
    name: str
    is_organizer: bool = False
    comment: str | None = None


class TimeRangeModel(BaseModel):
    start_at: AwareDatetime
    end_at: AwareDatetime

    @model_validator(mode="after")
    def validate_order(self) -> "TimeRangeModel":
        if self.start_at >= self.end_at:
            raise ValueError("Invalid time range: start must be before end")
        return self

    def to_range(self) -> TimeRange:
        return TimeRange(self.start_at, self.end_at)

    @classmethod
    def from_range(cls, r: TimeRange) -> "TimeRangeModel":
        return cls.model_construct(start_at=r.start_at, end_at=r.end_at)


def _check_name(v: str, what: str) -> str:
    if not v.strip() or len(v) > NAME_MAX:
        raise ValueError(f"{what} is required and must be less than {NAME_MAX} characters")
    return v


def _check_comment(v: str | None) -> str | None:
    if v is not None and len(v) > COMMENT_MAX:
        raise ValueError(f"Comment must be less than {COMMENT_MAX} characters")
    return v


class CreateEventRequest(BaseModel):
    title: str
    description: str | None = None
    organizer_name: str
    time_zone: str | None = None
    slot_duration: int = 60
    time_slots: list[TimeRangeModel]

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip() or len(v) > TITLE_MAX:
            raise ValueError(f"Title is required and must be less than {TITLE_MAX} characters")
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        if v is not None and len(v) > DESCRIPTION_MAX:
            raise ValueError(f"Description must be less than {DESCRIPTION_MAX} characters")
        return v

    @field_validator("organizer_name")
    @classmethod
    def validate_organizer_name(cls, v: str) -> str:
        return _check_name(v, "Organizer name")

    @field_validator("slot_duration")
    @classmethod
    def validate_slot_duration(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Slot duration must be positive")
        return v

    @field_validator("time_slots")
    @classmethod
    def validate_time_slots(cls, v: list[TimeRangeModel]) -> list[TimeRangeModel]:
        if not v:
            raise ValueError("At least one time slot is required")
        return v


class CreateEventResponse(BaseModel):
    id: UUID
    public_token: str
    organizer_token: str


class SubmitAvailabilityRequest(BaseModel):
    participant_name: str
    availabilities: list[TimeRangeModel]
    comment: str | None = None
    participant_token: UUID | None = None

    @field_validator("participant_name")
    @classmethod
    def validate_participant_name(cls, v: str) -> str:
        return _check_name(v, "Participant name")

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, v: str | None) -> str | None:
        return _check_comment(v)


class SubmitAvailabilityResponse(BaseModel):
    participant_token: UUID


class UpdateParticipantRequest(BaseModel):
    participant_name: str
    availabilities: list[TimeRangeModel]
    comment: str | None = None

    @field_validator("participant_name")
    @classmethod
    def validate_participant_name(cls, v: str) -> str:
        return _check_name(v, "Participant name")

    @field_validator("comment")
    @classmethod
    def validate_comment(cls, v: str | None) -> str | None:
        return _check_comment(v)


class ParticipantResponse(BaseModel):
    participant_token: UUID
    name: str
    comment: str | None = None
    availabilities: list[TimeRangeModel]


class ParticipantAvailability(BaseModel):
    name: str
    is_organizer: bool
    comment: str | None = None
    availabilities: list[TimeRangeModel]


class EventResponse(BaseModel):
    id: UUID
    title: str
    description: str | None = None
    time_zone: str | None = None
    slot_duration: int
    state: EventState
    event_slots: list[EventSlot]
    organizer_name: str


class EventResultsResponse(BaseModel):
    id: UUID
    title: str
    description: str | None = None
    time_zone: str | None = None
    slot_duration: int
    state: EventState
    event_slots: list[EventSlot]
    participants: list[ParticipantAvailability]
    total_participants: int


class OrganizerEventResponse(EventResultsResponse):
    public_token: str
    organizer_token: str
    created_at: datetime


class BatchCheckStatusRequest(BaseModel):
    tokens: list[str] = Field(default_factory=list)


class BatchCheckStatusResponse(BaseModel):
    statuses: dict[str, EventState]

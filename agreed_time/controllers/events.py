import logging
from uuid import UUID

import psycopg
from fastapi import APIRouter

from agreed_time import db
from agreed_time.dependencies import AppSettings
from agreed_time.errors import BadRequestError, NotFoundError
from agreed_time.models.events import (
    BatchCheckStatusRequest,
    BatchCheckStatusResponse,
    CreateEventRequest,
    CreateEventResponse,
    Event,
    EventResponse,
    EventResultsResponse,
    OrganizerEventResponse,
    ParticipantAvailability,
    ParticipantResponse,
    SubmitAvailabilityRequest,
    SubmitAvailabilityResponse,
    TimeRangeModel,
    UpdateParticipantRequest,
)
from agreed_time.scheduling.admission import admit_participant
from agreed_time.scheduling.intervals import TimeRange, merge_time_ranges
from agreed_time.scheduling.results import EventResults, aggregate_results

logger = logging.getLogger("agreed_time.events")
router = APIRouter()


def _ranges_out(ranges: list[TimeRange]) -> list[TimeRangeModel]:
    return [TimeRangeModel.from_range(r) for r in ranges]


def _participants_out(results: EventResults) -> list[ParticipantAvailability]:
    return [
        ParticipantAvailability(
            name=p.name,
            is_organizer=p.is_organizer,
            comment=p.comment,
            availabilities=_ranges_out(p.ranges),
        )
        for p in results.participants
    ]


def _ensure_open(event: Event) -> None:
    if event.is_closed:
        logger.warning("Write rejected for closed event %s", event.id)
        raise BadRequestError("Cannot update participation for a closed event")


async def _event_response(conn: psycopg.AsyncConnection, event: Event) -> EventResponse:
    organizer_name = await db.get_organizer_name(conn, event.id)
    slots = await db.fetch_event_slots(conn, event.id)
    return EventResponse(
        id=event.id,
        title=event.title,
        description=event.description,
        time_zone=event.time_zone,
        slot_duration=event.slot_duration,
        state=event.state,
        event_slots=slots,
        organizer_name=organizer_name,
    )


@router.post("/events", status_code=201)
async def create_event(req: CreateEventRequest) -> CreateEventResponse:
    logger.info("POST /events title=%r slots=%d", req.title, len(req.time_slots))
    merged = merge_time_ranges(s.to_range() for s in req.time_slots)
    async with db.transaction() as conn:
        event = await db.insert_event(conn, req.title, req.description, req.time_zone, req.slot_duration)
        await db.insert_event_slots(conn, event.id, merged)
        organizer = await db.insert_participant(conn, event.id, req.organizer_name, True, None)
        await db.replace_availability(conn, organizer.id, merged)
    logger.info("Created event id=%s slots=%d", event.id, len(merged))
    return CreateEventResponse(
        id=event.id,
        public_token=event.public_token,
        organizer_token=event.organizer_token,
    )


@router.post("/events/batch-check")
async def check_events_status(req: BatchCheckStatusRequest, settings: AppSettings) -> BatchCheckStatusResponse:
    limit = settings.scheduling.max_batch_tokens
    if len(req.tokens) > limit:
        raise BadRequestError(f"Too many tokens to check (max {limit})")
    if not req.tokens:
        return BatchCheckStatusResponse(statuses={})
    async with db.connection() as conn:
        statuses = await db.fetch_event_states(conn, req.tokens)
    return BatchCheckStatusResponse(statuses=statuses)


@router.get("/events/organizer/{organizer_token}")
async def get_organizer_event(organizer_token: str) -> OrganizerEventResponse:
    async with db.connection() as conn:
        event = await db.get_event_by_organizer_token(conn, organizer_token)
        if event is None:
            raise NotFoundError()
        slots = await db.fetch_event_slots(conn, event.id)
        results = aggregate_results(await db.fetch_results_rows(conn, event.id))
    return OrganizerEventResponse(
        id=event.id,
        public_token=event.public_token,
        organizer_token=event.organizer_token,
        title=event.title,
        description=event.description,
        time_zone=event.time_zone,
        slot_duration=event.slot_duration,
        state=event.state,
        event_slots=slots,
        participants=_participants_out(results),
        total_participants=results.total_participants,
        created_at=event.created_at,
    )


@router.get("/events/{public_token}")
async def get_event(public_token: str) -> EventResponse:
    async with db.connection() as conn:
        event = await db.get_event_by_public_token(conn, public_token)
        if event is None:
            raise NotFoundError()
        return await _event_response(conn, event)


@router.post("/events/{public_token}/availability")
async def submit_availability(
    public_token: str, req: SubmitAvailabilityRequest, settings: AppSettings
) -> SubmitAvailabilityResponse:
    logger.info(
        "POST /events/%s/availability ranges=%d resubmission=%s",
        public_token, len(req.availabilities), req.participant_token is not None,
    )
    merged = merge_time_ranges(r.to_range() for r in req.availabilities)
    async with db.transaction() as conn:
        event = await db.lock_event_by_public_token(conn, public_token)
        if event is None:
            raise NotFoundError()
        _ensure_open(event)
        participant = await admit_participant(
            conn,
            event,
            req.participant_name,
            req.comment,
            req.participant_token,
            settings.scheduling.max_participants,
        )
        await db.replace_availability(conn, participant.id, merged)
    logger.info("Stored %d ranges for participant %s", len(merged), participant.id)
    return SubmitAvailabilityResponse(participant_token=participant.token)


@router.get("/events/{public_token}/results")
async def get_event_results(public_token: str) -> EventResultsResponse:
    async with db.connection() as conn:
        event = await db.get_event_by_public_token(conn, public_token)
        if event is None:
            raise NotFoundError()
        slots = await db.fetch_event_slots(conn, event.id)
        results = aggregate_results(await db.fetch_results_rows(conn, event.id))
    return EventResultsResponse(
        id=event.id,
        title=event.title,
        description=event.description,
        time_zone=event.time_zone,
        slot_duration=event.slot_duration,
        state=event.state,
        event_slots=slots,
        participants=_participants_out(results),
        total_participants=results.total_participants,
    )


@router.post("/events/{organizer_token}/close")
async def close_event(organizer_token: str) -> EventResponse:
    async with db.connection() as conn:
        event = await db.close_event(conn, organizer_token)
        if event is None:
            raise NotFoundError()
        logger.info("Closed event %s", event.id)
        return await _event_response(conn, event)


@router.get("/events/{public_token}/participants/{participant_token}")
async def get_participant(public_token: str, participant_token: UUID) -> ParticipantResponse:
    async with db.connection() as conn:
        event = await db.get_event_by_public_token(conn, public_token)
        if event is None:
            raise NotFoundError()
        participant = await db.get_participant_by_token(conn, event.id, participant_token)
        if participant is None:
            raise NotFoundError()
        ranges = await db.fetch_participant_availability(conn, participant.id)
    return ParticipantResponse(
        participant_token=participant.token,
        name=participant.name,
        comment=participant.comment,
        availabilities=_ranges_out(ranges),
    )


@router.put("/events/{public_token}/participants/{participant_token}")
async def update_participant(
    public_token: str, participant_token: UUID, req: UpdateParticipantRequest, settings: AppSettings
) -> ParticipantResponse:
    merged = merge_time_ranges(r.to_range() for r in req.availabilities)
    async with db.transaction() as conn:
        event = await db.lock_event_by_public_token(conn, public_token)
        if event is None:
            raise NotFoundError()
        _ensure_open(event)
        participant = await admit_participant(
            conn,
            event,
            req.participant_name,
            req.comment,
            participant_token,
            settings.scheduling.max_participants,
        )
        await db.replace_availability(conn, participant.id, merged)
    logger.info("Updated participant %s on event %s", participant.id, event.id)
    return ParticipantResponse(
        participant_token=participant.token,
        name=participant.name,
        comment=participant.comment,
        availabilities=_ranges_out(merged),
    )

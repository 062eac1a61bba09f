from agreed_time.db.core import (
    close_pool,
    connection,
    get_pool,
    get_pool_stats,
    init_pool,
    transaction,
)
from agreed_time.db.events import (
    close_event,
    count_participants,
    delete_expired_events,
    fetch_event_slots,
    fetch_event_states,
    fetch_participant_availability,
    fetch_results_rows,
    generate_token,
    get_event_by_organizer_token,
    get_event_by_public_token,
    get_organizer_name,
    get_participant_by_token,
    insert_event,
    insert_event_slots,
    insert_participant,
    lock_event_by_public_token,
    replace_availability,
    update_participant,
)

__all__ = [
    "close_event",
    "close_pool",
    "connection",
    "count_participants",
    "delete_expired_events",
    "fetch_event_slots",
    "fetch_event_states",
    "fetch_participant_availability",
    "fetch_results_rows",
    "generate_token",
    "get_event_by_organizer_token",
    "get_event_by_public_token",
    "get_organizer_name",
    "get_participant_by_token",
    "get_pool",
    "get_pool_stats",
    "init_pool",
    "insert_event",
    "insert_event_slots",
    "insert_participant",
    "lock_event_by_public_token",
    "replace_availability",
    "transaction",
    "update_participant",
]

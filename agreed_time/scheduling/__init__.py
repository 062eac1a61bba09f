from agreed_time.scheduling.intervals import TimeRange, merge_time_ranges
from agreed_time.scheduling.results import EventResults, ParticipantResult, ResultRow, aggregate_results

__all__ = [
    "EventResults",
    "ParticipantResult",
    "ResultRow",
    "TimeRange",
    "aggregate_results",
    "merge_time_ranges",
]

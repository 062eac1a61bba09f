"""Tests for merging availability ranges."""

import random
from datetime import UTC, datetime, timedelta

from agreed_time.scheduling.intervals import TimeRange, merge_time_ranges

BASE = datetime(2025, 3, 1, tzinfo=UTC)


def hr(start: float, end: float) -> TimeRange:
    """Range expressed in hours after BASE."""
    return TimeRange(BASE + timedelta(hours=start), BASE + timedelta(hours=end))


def covered_minutes(ranges: list[TimeRange]) -> set[int]:
    minutes = set()
    for r in ranges:
        start = int((r.start_at - BASE).total_seconds() // 60)
        end = int((r.end_at - BASE).total_seconds() // 60)
        minutes.update(range(start, end))
    return minutes


class TestMergeExamples:
    """Known inputs and their merged output."""

    def test_overlapping_ranges_merge(self):
        assert merge_time_ranges([hr(9, 10), hr(9.5, 11)]) == [hr(9, 11)]

    def test_disjoint_ranges_stay_sorted(self):
        assert merge_time_ranges([hr(14, 15), hr(9, 10)]) == [hr(9, 10), hr(14, 15)]

    def test_touching_ranges_merge(self):
        assert merge_time_ranges([hr(9, 10), hr(10, 11)]) == [hr(9, 11)]

    def test_nested_range_absorbed(self):
        assert merge_time_ranges([hr(9, 17), hr(10, 11), hr(12, 13)]) == [hr(9, 17)]

    def test_empty_input(self):
        assert merge_time_ranges([]) == []

    def test_single_range_unchanged(self):
        assert merge_time_ranges([hr(9, 10)]) == [hr(9, 10)]

    def test_duplicates_collapse(self):
        assert merge_time_ranges([hr(9, 10), hr(9, 10), hr(9, 10)]) == [hr(9, 10)]

    def test_accepts_generator(self):
        assert merge_time_ranges(r for r in [hr(1, 2), hr(1.5, 3)]) == [hr(1, 3)]

    def test_chain_merges_transitively(self):
        ranges = [hr(5, 6), hr(1, 2), hr(2, 3), hr(2.5, 5)]
        assert merge_time_ranges(ranges) == [hr(1, 6)]

    def test_mixed_offsets_compare_by_instant(self):
        from datetime import timezone

        plus_one = timezone(timedelta(hours=1))
        a = TimeRange(datetime(2025, 3, 1, 10, tzinfo=plus_one), datetime(2025, 3, 1, 11, tzinfo=plus_one))
        b = TimeRange(datetime(2025, 3, 1, 9, 30, tzinfo=UTC), datetime(2025, 3, 1, 11, tzinfo=UTC))
        merged = merge_time_ranges([b, a])
        assert len(merged) == 1
        assert merged[0].start_at == datetime(2025, 3, 1, 9, tzinfo=UTC)
        assert merged[0].end_at == datetime(2025, 3, 1, 11, tzinfo=UTC)


class TestMergeProperties:
    """Properties checked over randomly generated inputs."""

    @staticmethod
    def random_ranges(rng: random.Random) -> list[TimeRange]:
        out = []
        for _ in range(rng.randint(0, 12)):
            start = rng.randint(0, 48) / 2
            length = rng.randint(1, 8) / 2
            out.append(hr(start, start + length))
        return out

    def test_output_sorted_and_separated(self):
        rng = random.Random(1234)
        for _ in range(200):
            merged = merge_time_ranges(self.random_ranges(rng))
            for prev, nxt in zip(merged, merged[1:]):
                assert prev.end_at < nxt.start_at

    def test_union_preserved(self):
        rng = random.Random(99)
        for _ in range(200):
            ranges = self.random_ranges(rng)
            assert covered_minutes(merge_time_ranges(ranges)) == covered_minutes(ranges)

    def test_idempotent(self):
        rng = random.Random(7)
        for _ in range(200):
            once = merge_time_ranges(self.random_ranges(rng))
            assert merge_time_ranges(once) == once

    def test_order_of_input_irrelevant(self):
        rng = random.Random(42)
        for _ in range(100):
            ranges = self.random_ranges(rng)
            shuffled = list(ranges)
            rng.shuffle(shuffled)
            assert merge_time_ranges(shuffled) == merge_time_ranges(ranges)

    def test_output_never_longer_than_input(self):
        rng = random.Random(5)
        for _ in range(100):
            ranges = self.random_ranges(rng)
            assert len(merge_time_ranges(ranges)) <= len(ranges)

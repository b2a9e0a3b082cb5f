from __future__ import annotations

import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from boxup.models import UNCLASSIFIED_COLOR
from boxup.services.ranges import UsageRange, bucket_edges, resolve_range
from boxup.services.usage import (
    UNCLASSIFIED_KEY,
    UsageAggregator,
    aggregate_usage,
    count_activity,
)
from boxup.utils.errors import StoreFailure

T = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _cat(cid: int, name: str, color=(10, 20, 30, 255)) -> SimpleNamespace:
    return SimpleNamespace(id=cid, name=name, color=color)


def _entry(created_at: datetime, category: SimpleNamespace | None = None) -> SimpleNamespace:
    return SimpleNamespace(created_at=created_at, category=category)


class _FakeStore:
    """只实现统计需要的一个方法：按窗口过滤内存里的记录。"""

    def __init__(self, entries, *, fail: bool = False):
        self.entries = entries
        self.fail = fail
        self.calls: list[tuple[datetime, datetime]] = []

    async def query_entries_in_range(self, start, end):
        self.calls.append((start, end))
        if self.fail:
            raise StoreFailure("Could not load data, please try again.")
        return [e for e in self.entries if start <= e.created_at < end]


class RangeTests(unittest.TestCase):
    def test_spans(self):
        self.assertEqual(resolve_range(UsageRange.DAY, T), (T - timedelta(hours=24), T))
        self.assertEqual(resolve_range(UsageRange.WEEK, T), (T - timedelta(days=7), T))
        self.assertEqual(resolve_range(UsageRange.MONTH, T), (T - timedelta(days=30), T))

    def test_accepts_raw_tokens_and_naive_now(self):
        start, end = resolve_range(UsageRange("7d"), T.replace(tzinfo=None))
        self.assertEqual(end, T)
        self.assertEqual(start, T - timedelta(days=7))

    def test_bucket_edges_cover_window_contiguously(self):
        for token, expected in ((UsageRange.DAY, 24), (UsageRange.WEEK, 7), (UsageRange.MONTH, 30)):
            edges = bucket_edges(token, T)
            self.assertEqual(len(edges), expected)
            self.assertEqual(edges[0][0], resolve_range(token, T)[0])
            self.assertEqual(edges[-1][1], T)
            for (_, prev_end), (next_start, _) in zip(edges, edges[1:]):
                self.assertEqual(prev_end, next_start)


class AggregateUsageTests(unittest.TestCase):
    def setUp(self):
        self.a = _cat(1, "Alpha")
        self.b = _cat(2, "Beta")
        self.entries = [
            _entry(T - timedelta(hours=1), self.a),
            _entry(T - timedelta(days=2), self.a),
            _entry(T - timedelta(days=10), self.b),
            _entry(T - timedelta(days=40), None),
        ]

    def _summary(self, report):
        return [(u.name, u.count) for u in report.usages]

    def test_week_month_day_windows(self):
        week = aggregate_usage(self.entries, since=T - timedelta(days=7), until=T)
        self.assertEqual(self._summary(week), [("Alpha", 2)])
        self.assertEqual(week.total_count, 2)

        month = aggregate_usage(self.entries, since=T - timedelta(days=30), until=T)
        self.assertEqual(self._summary(month), [("Alpha", 2), ("Beta", 1)])
        self.assertEqual(month.total_count, 3)

        day = aggregate_usage(self.entries, since=T - timedelta(hours=24), until=T)
        self.assertEqual(self._summary(day), [("Alpha", 1)])
        self.assertEqual(day.total_count, 1)

    def test_window_is_half_open(self):
        since = T - timedelta(days=1)
        entries = [_entry(since, self.a), _entry(T, self.a)]
        report = aggregate_usage(entries, since=since, until=T)
        self.assertEqual(report.total_count, 1)

    def test_sum_of_counts_equals_entries_in_window(self):
        since = T - timedelta(days=30)
        report = aggregate_usage(self.entries, since=since, until=T)
        in_window = [e for e in self.entries if since <= e.created_at < T]
        self.assertEqual(sum(u.count for u in report.usages), len(in_window))
        self.assertEqual(report.total_count, len(in_window))

    def test_uncategorized_entries_land_once_in_unclassified_bucket(self):
        entries = [_entry(T - timedelta(minutes=i + 1)) for i in range(3)] + [
            _entry(T - timedelta(minutes=5), self.a)
        ]
        report = aggregate_usage(entries)
        unclassified = [u for u in report.usages if u.key == UNCLASSIFIED_KEY]
        self.assertEqual(len(unclassified), 1)
        self.assertEqual(unclassified[0].count, 3)
        self.assertIsNone(unclassified[0].category_id)
        self.assertEqual(unclassified[0].color, UNCLASSIFIED_COLOR)
        self.assertEqual(report.total_count, 4)

    def test_sorted_by_count_desc_then_name(self):
        c = _cat(3, "Gamma")
        entries = (
            [_entry(T - timedelta(minutes=1), self.a)] * 3
            + [_entry(T - timedelta(minutes=1), self.b)] * 5
            + [_entry(T - timedelta(minutes=1), c)] * 1
        )
        report = aggregate_usage(entries)
        self.assertEqual(self._summary(report), [("Beta", 5), ("Alpha", 3), ("Gamma", 1)])

        tie = aggregate_usage([_entry(T, _cat(9, "zeta")), _entry(T, _cat(8, "Eta"))])
        self.assertEqual([u.name for u in tie.usages], ["Eta", "zeta"])

    def test_idempotent(self):
        first = aggregate_usage(self.entries, since=T - timedelta(days=30), until=T)
        second = aggregate_usage(self.entries, since=T - timedelta(days=30), until=T)
        self.assertEqual(first, second)

    def test_uses_current_category_name_and_color(self):
        cat = _cat(1, "Old", color=(1, 2, 3, 255))
        entries = [_entry(T - timedelta(minutes=1), cat)]
        cat.name = "New"
        cat.color = (4, 5, 6, 255)
        usage = aggregate_usage(entries).usages[0]
        self.assertEqual((usage.name, usage.color), ("New", (4, 5, 6, 255)))

    def test_empty_input(self):
        report = aggregate_usage([])
        self.assertEqual(report.usages, [])
        self.assertEqual(report.total_count, 0)
        self.assertFalse(report.failed)


class CountActivityTests(unittest.TestCase):
    def test_hourly_buckets(self):
        a = _cat(1, "Alpha")
        edges = bucket_edges(UsageRange.DAY, T)
        entries = [
            _entry(T - timedelta(minutes=10), a),
            _entry(T - timedelta(minutes=50), a),
            _entry(T - timedelta(hours=5, minutes=1), None),
            _entry(T - timedelta(days=3), a),
        ]
        report = count_activity(entries, edges)
        self.assertEqual(report.total_count, 3)
        self.assertEqual(report.buckets[-1][2], 2)
        self.assertEqual(report.buckets[-6][2], 1)
        self.assertEqual(sum(b[2] for b in report.buckets), 3)


class UsageAggregatorTests(unittest.IsolatedAsyncioTestCase):
    async def test_collect_anchors_window_on_now(self):
        a = _cat(1, "Alpha")
        store = _FakeStore([_entry(T - timedelta(hours=1), a), _entry(T - timedelta(days=2), a)])
        aggregator = UsageAggregator(store, clock=lambda: T)

        report = await aggregator.collect(UsageRange.DAY)

        self.assertEqual(store.calls, [(T - timedelta(hours=24), T)])
        self.assertEqual([(u.name, u.count) for u in report.usages], [("Alpha", 1)])
        self.assertEqual((report.since, report.until), (T - timedelta(hours=24), T))
        self.assertFalse(report.failed)

    async def test_store_failure_is_distinct_from_no_data(self):
        failing = UsageAggregator(_FakeStore([], fail=True), clock=lambda: T)
        empty = UsageAggregator(_FakeStore([]), clock=lambda: T)

        with self.assertLogs("boxup.services.usage", level="WARNING"):
            failed = await failing.collect(UsageRange.WEEK)
        nothing = await empty.collect(UsageRange.WEEK)

        self.assertTrue(failed.failed)
        self.assertEqual(failed.usages, [])
        self.assertEqual(failed.total_count, 0)
        self.assertIsNotNone(failed.error)

        self.assertFalse(nothing.failed)
        self.assertEqual(nothing.usages, [])
        self.assertIsNone(nothing.error)

    async def test_activity_failure_keeps_empty_buckets(self):
        aggregator = UsageAggregator(_FakeStore([], fail=True), clock=lambda: T)
        with self.assertLogs("boxup.services.usage", level="WARNING"):
            report = await aggregator.collect_activity(UsageRange.WEEK)
        self.assertTrue(report.failed)
        self.assertEqual(len(report.buckets), 7)
        self.assertTrue(all(count == 0 for _, _, count in report.buckets))


if __name__ == "__main__":
    unittest.main()

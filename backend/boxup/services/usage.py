"""分类使用统计（统计页柱状图 + 迷你折线图）。

设计目标：
- `aggregate_usage` / `count_activity` 是纯函数：只对已取回的记录做内存计算，不做 I/O；
- 分类名/颜色取“统计时”的分类信息（改名改色后立刻反映），而不是记录创建时的快照；
- 取数失败时不让统计页崩掉：返回空结果，但用 `failed=True` 区分“查询失败”和“确实没数据”。
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from ..config import settings
from ..models import UNCLASSIFIED_COLOR
from ..utils.errors import StoreFailure, exception_summary
from .ranges import UsageRange, as_utc, bucket_edges, resolve_range, utc_now

logger = logging.getLogger(__name__)

UNCLASSIFIED_KEY = "unclassified"


@dataclass(frozen=True)
class CategoryUsage:
    key: str
    category_id: int | None
    name: str
    color: tuple[int, int, int, int]
    count: int


@dataclass(frozen=True)
class UsageReport:
    usages: list[CategoryUsage] = field(default_factory=list)
    total_count: int = 0
    since: datetime | None = None
    until: datetime | None = None
    failed: bool = False
    error: str | None = None


@dataclass(frozen=True)
class ActivityReport:
    buckets: list[tuple[datetime, datetime, int]] = field(default_factory=list)
    total_count: int = 0
    failed: bool = False
    error: str | None = None


class EntryRangeSource(Protocol):
    async def query_entries_in_range(self, start: datetime, end: datetime) -> list[Any]: ...


def _in_window(created_at: datetime | None, since: datetime | None, until: datetime | None) -> bool:
    if created_at is None:
        return False
    ts = as_utc(created_at)
    if since is not None and ts < as_utc(since):
        return False
    if until is not None and ts >= as_utc(until):
        return False
    return True


def aggregate_usage(
    entries: Iterable[Any],
    *,
    since: datetime | None = None,
    until: datetime | None = None,
) -> UsageReport:
    """按分类计数（左闭右开窗口，可选），count 倒序，同数按名称升序。"""
    buckets: dict[str, list[Any]] = {}
    total = 0

    for e in entries:
        if e is None or not _in_window(e.created_at, since, until):
            continue
        total += 1
        category = e.category
        if category is None or category.id is None:
            key, category = UNCLASSIFIED_KEY, None
        else:
            key = str(category.id)
        bucket = buckets.setdefault(key, [category, 0])
        bucket[1] += 1

    usages: list[CategoryUsage] = []
    for key, (category, count) in buckets.items():
        if category is None:
            usages.append(
                CategoryUsage(
                    key=UNCLASSIFIED_KEY,
                    category_id=None,
                    name=settings.unclassified_label,
                    color=UNCLASSIFIED_COLOR,
                    count=count,
                )
            )
            continue
        usages.append(
            CategoryUsage(
                key=key,
                category_id=int(category.id),
                name=category.name or "",
                color=category.color,
                count=count,
            )
        )

    usages.sort(key=lambda u: (-u.count, u.name.casefold(), u.key))
    return UsageReport(usages=usages, total_count=total, since=since, until=until)


def count_activity(
    entries: Iterable[Any],
    edges: list[tuple[datetime, datetime]],
) -> ActivityReport:
    """按给定桶边界统计条数（桶之间左闭右开、首尾相接）。"""
    counts = [0] * len(edges)
    total = 0
    for e in entries:
        if e is None or e.created_at is None:
            continue
        ts = as_utc(e.created_at)
        for idx, (start, end) in enumerate(edges):
            if start <= ts < end:
                counts[idx] += 1
                total += 1
                break
    return ActivityReport(
        buckets=[(start, end, counts[idx]) for idx, (start, end) in enumerate(edges)],
        total_count=total,
    )


class UsageAggregator:
    """统计页取数 + 聚合；store 只需提供 `query_entries_in_range`。"""

    def __init__(self, store: EntryRangeSource, *, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    async def collect(self, range_token: UsageRange, *, now: datetime | None = None) -> UsageReport:
        anchor = now or self.clock()
        since, until = resolve_range(range_token, anchor)
        try:
            entries = await self.store.query_entries_in_range(since, until)
        except StoreFailure as e:
            logger.warning(
                "[STATS] Usage query failed range=%s: %s",
                UsageRange(range_token).value,
                exception_summary(e),
            )
            return UsageReport(
                usages=[],
                total_count=0,
                since=since,
                until=until,
                failed=True,
                error=e.message,
            )
        return aggregate_usage(entries, since=since, until=until)

    async def collect_activity(self, range_token: UsageRange, *, now: datetime | None = None) -> ActivityReport:
        anchor = now or self.clock()
        since, until = resolve_range(range_token, anchor)
        edges = bucket_edges(range_token, anchor)
        try:
            entries = await self.store.query_entries_in_range(since, until)
        except StoreFailure as e:
            logger.warning(
                "[STATS] Activity query failed range=%s: %s",
                UsageRange(range_token).value,
                exception_summary(e),
            )
            return ActivityReport(
                buckets=[(start, end, 0) for start, end in edges],
                total_count=0,
                failed=True,
                error=e.message,
            )
        return count_activity(entries, edges)

"""统计时间窗口解析（24h / 7d / 30d）。

说明：
- 窗口一律锚定在调用方传入的 `now`（左闭右开 `[start, now)`），不在内部读取系统时钟，
  这样同一次统计里的多个计算共用同一个边界，测试也可复现。
- naive datetime 视为 UTC。
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum


class UsageRange(str, Enum):
    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"


_RANGE_SPANS: dict[UsageRange, timedelta] = {
    UsageRange.DAY: timedelta(hours=24),
    UsageRange.WEEK: timedelta(days=7),
    UsageRange.MONTH: timedelta(days=30),
}

# 迷你折线图的分桶粒度：24h 按小时，7d/30d 按天
_BUCKET_STEPS: dict[UsageRange, timedelta] = {
    UsageRange.DAY: timedelta(hours=1),
    UsageRange.WEEK: timedelta(days=1),
    UsageRange.MONTH: timedelta(days=1),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """naive 视为 UTC；aware 统一换算到 UTC。"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_range(token: UsageRange, now: datetime) -> tuple[datetime, datetime]:
    end = as_utc(now)
    return end - _RANGE_SPANS[UsageRange(token)], end


def bucket_edges(token: UsageRange, now: datetime) -> list[tuple[datetime, datetime]]:
    """把窗口切成等宽的桶（最早的在前），桶数 = 窗口 / 粒度。"""
    start, end = resolve_range(token, now)
    step = _BUCKET_STEPS[UsageRange(token)]
    edges: list[tuple[datetime, datetime]] = []
    cursor = start
    while cursor < end:
        edges.append((cursor, min(cursor + step, end)))
        cursor += step
    return edges

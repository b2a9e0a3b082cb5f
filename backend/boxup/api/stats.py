"""统计数据 API（统计页用）。"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..schemas import (
    CategoryUsageResponse,
    ColorRGBA,
    StatsActivityBucket,
    StatsActivityResponse,
    StatsOverviewResponse,
    StatsUsageResponse,
)
from ..services import EntryStore, UsageAggregator, UsageRange
from ..services.ranges import resolve_range
from ..utils.errors import BoxUpError, to_http_exception

router = APIRouter(prefix="/stats", tags=["stats"])

# 9999-12-31T23:59:59.999Z
_UNTIL_MS_MAX = 253402300799999


def _resolve_anchor(range_token: UsageRange | None, until_ms: int | None) -> tuple[UsageRange, datetime]:
    """统一取一次 now：同一次请求里窗口边界保持一致。"""
    token = UsageRange(range_token or settings.stats_default_range)
    if until_ms is None:
        return token, datetime.now(timezone.utc)
    try:
        return token, datetime.fromtimestamp(until_ms / 1000, tz=timezone.utc)
    except (OverflowError, ValueError, OSError) as e:
        raise HTTPException(status_code=422, detail="until_ms out of range") from e


@router.get("/usage", response_model=StatsUsageResponse)
async def get_usage_stats(
    range_token: UsageRange | None = Query(None, alias="range", description="时间窗口：24h / 7d / 30d"),
    until_ms: int | None = Query(None, ge=1, le=_UNTIL_MS_MAX, description="窗口终点（UTC 毫秒时间戳，左闭右开，不传则取当前时间）"),
    db: AsyncSession = Depends(get_db),
):
    """按分类统计窗口内的记录数（count 倒序，同数按名称升序）。

    说明：
    - 没有分类的记录归入 key=unclassified 的“未分类”桶；
    - 取数失败不会返回 5xx：usages 为空 + failed=True，前端据此提示“加载失败”。
    """
    token, now = _resolve_anchor(range_token, until_ms)
    aggregator = UsageAggregator(EntryStore(db))
    report = await aggregator.collect(token, now=now)
    since, until = resolve_range(token, now)

    return StatsUsageResponse(
        range=token.value,
        since_time=since,
        until_time=until,
        total_count=report.total_count,
        usages=[
            CategoryUsageResponse(
                key=u.key,
                category_id=u.category_id,
                name=u.name,
                color=ColorRGBA.from_tuple(u.color),
                count=u.count,
            )
            for u in report.usages
        ],
        failed=report.failed,
        error=report.error,
    )


@router.get("/activity", response_model=StatsActivityResponse)
async def get_activity_stats(
    range_token: UsageRange | None = Query(None, alias="range", description="时间窗口：24h / 7d / 30d"),
    until_ms: int | None = Query(None, ge=1, le=_UNTIL_MS_MAX, description="窗口终点（UTC 毫秒时间戳，不传则取当前时间）"),
    db: AsyncSession = Depends(get_db),
):
    """窗口内按时间分桶的记录数（24h 按小时，7d/30d 按天）。"""
    token, now = _resolve_anchor(range_token, until_ms)
    aggregator = UsageAggregator(EntryStore(db))
    report = await aggregator.collect_activity(token, now=now)
    since, until = resolve_range(token, now)

    return StatsActivityResponse(
        range=token.value,
        since_time=since,
        until_time=until,
        total_count=report.total_count,
        buckets=[StatsActivityBucket(start=start, end=end, count=count) for start, end, count in report.buckets],
        failed=report.failed,
        error=report.error,
    )


@router.get("/overview", response_model=StatsOverviewResponse)
async def get_stats_overview(db: AsyncSession = Depends(get_db)):
    """统计概览：记录总数 / 分类数 / 未分类记录数 / 最近一条记录时间。"""
    store = EntryStore(db)
    try:
        overview = await store.entry_overview()
    except BoxUpError as e:
        raise to_http_exception(e) from e
    return StatsOverviewResponse(**overview)

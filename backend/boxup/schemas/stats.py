from datetime import datetime

from pydantic import BaseModel, Field

from .category import ColorRGBA


class CategoryUsageResponse(BaseModel):
    """单个分类（或“未分类”桶）在窗口内的记录数。"""

    key: str
    category_id: int | None = None
    name: str
    color: ColorRGBA
    count: int


class StatsUsageResponse(BaseModel):
    """统计页柱状图数据。

    注意：failed=True 表示取数失败（usages 为空、total_count=0），
    前端应提示“加载失败”，而不是当成“窗口内没有记录”。
    """

    range: str
    since_time: datetime
    until_time: datetime
    total_count: int = 0
    usages: list[CategoryUsageResponse] = Field(default_factory=list)
    failed: bool = False
    error: str | None = None


class StatsActivityBucket(BaseModel):
    start: datetime
    end: datetime
    count: int = 0


class StatsActivityResponse(BaseModel):
    """迷你折线图数据：24h 按小时分桶，7d/30d 按天分桶（最早的在前）。"""

    range: str
    since_time: datetime
    until_time: datetime
    total_count: int = 0
    buckets: list[StatsActivityBucket] = Field(default_factory=list)
    failed: bool = False
    error: str | None = None


class StatsOverviewResponse(BaseModel):
    """统计概览"""

    total_entries: int
    total_categories: int
    uncategorized_entries: int
    last_entry_at: datetime | None = None

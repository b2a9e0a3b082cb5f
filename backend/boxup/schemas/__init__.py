from .category import (
    CategoryCreate,
    CategoryDeleteResponse,
    CategoryResponse,
    CategorySummary,
    CategoryUpdate,
    ColorRGBA,
    IconPresetResponse,
)
from .entry import (
    EntryBatchDeleteRequest,
    EntryBatchDeleteResponse,
    EntryCreate,
    EntryListItemResponse,
    EntryQueryResponse,
    EntryResponse,
    EntryUpdate,
)
from .stats import (
    CategoryUsageResponse,
    StatsActivityBucket,
    StatsActivityResponse,
    StatsOverviewResponse,
    StatsUsageResponse,
)

__all__ = [
    "ColorRGBA",
    "CategoryCreate",
    "CategoryUpdate",
    "CategorySummary",
    "CategoryResponse",
    "CategoryDeleteResponse",
    "IconPresetResponse",
    "EntryCreate",
    "EntryUpdate",
    "EntryResponse",
    "EntryListItemResponse",
    "EntryQueryResponse",
    "EntryBatchDeleteRequest",
    "EntryBatchDeleteResponse",
    "CategoryUsageResponse",
    "StatsUsageResponse",
    "StatsActivityBucket",
    "StatsActivityResponse",
    "StatsOverviewResponse",
]

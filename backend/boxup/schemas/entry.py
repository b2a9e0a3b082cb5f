from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .category import CategorySummary


class EntryCreate(BaseModel):
    """新建记录请求。

    约定：
    - title 去空白后不能为空；
    - category_id 必填（编辑器要求先选分类）；
    - created_at 不传则取服务端当前时间。
    """

    title: str = ""
    body: str = ""
    category_id: int | None = None
    created_at: datetime | None = None


class EntryUpdate(BaseModel):
    """修改记录请求：不传的字段保持不变。"""

    title: str | None = None
    body: str | None = None
    category_id: int | None = None
    created_at: datetime | None = None


class EntryResponse(BaseModel):
    """记录详情"""

    id: int
    title: str
    body: str
    created_at: datetime
    updated_at: datetime | None = None
    category: CategorySummary | None = None


class EntryListItemResponse(BaseModel):
    """记录列表项（不返回完整正文，只给命中附近的预览片段与字数）。"""

    id: int
    title: str
    display_title: str
    body_preview: str | None = None
    word_count_no_ws: int = 0
    created_at: datetime
    updated_at: datetime | None = None
    category: CategorySummary | None = None


class EntryQueryResponse(BaseModel):
    """主列表响应：count + items，支持前端分页。"""

    count: int = 0
    limit: int = 200
    offset: int = 0
    has_more: bool = False
    took_ms: int = 0
    category_id: int | None = None
    # 去空白后的搜索词；为空表示没有按关键字过滤
    q: str | None = None
    items: list[EntryListItemResponse] = Field(default_factory=list)


class EntryBatchDeleteRequest(BaseModel):
    entry_ids: list[int] = Field(default_factory=list)


class EntryBatchDeleteResponse(BaseModel):
    deleted: int = 0

"""Entry API（主列表 / 编辑器）"""

from __future__ import annotations

import re
import time
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models import Category, Entry
from ..schemas import (
    CategorySummary,
    ColorRGBA,
    EntryBatchDeleteRequest,
    EntryBatchDeleteResponse,
    EntryCreate,
    EntryListItemResponse,
    EntryQueryResponse,
    EntryResponse,
    EntryUpdate,
)
from ..services import EntryStore, filter_entries
from ..services.entry_filter import normalize_search, plain_text
from ..services.ranges import as_utc
from ..utils.errors import BoxUpError, to_http_exception

router = APIRouter(prefix="/entries", tags=["entries"])

_WS_RE = re.compile(r"\s+", flags=re.UNICODE)
_UNTITLED = "Untitled"
_BATCH_MAX = 200


def _count_no_whitespace(text: str | None) -> int:
    if not text:
        return 0
    return len(_WS_RE.sub("", str(text)))


def _build_match_snippet(text: str | None, preview_len: int, needle: str) -> str:
    """构造“命中附近片段”预览；没有搜索词或没命中正文时取开头。"""
    if preview_len <= 0:
        return ""
    raw = "" if text is None else str(text)
    if len(raw) <= preview_len:
        return raw
    if not needle:
        return raw[:preview_len] + "…"

    idx = raw.lower().find(needle)
    if idx < 0:
        return raw[:preview_len] + "…"

    # 让命中点前留一点上下文（约 25%）
    start = max(0, idx - int(preview_len * 0.25))
    snippet = raw[start : start + preview_len]
    prefix = "…" if start > 0 else ""
    suffix = "…" if (start + preview_len) < len(raw) else ""
    return f"{prefix}{snippet}{suffix}"


def category_summary(category: Category | None) -> CategorySummary | None:
    if category is None or category.id is None:
        return None
    return CategorySummary(
        id=int(category.id),
        name=category.name,
        icon=category.icon,
        color=ColorRGBA.from_tuple(category.color),
    )


def _entry_response(entry: Entry) -> EntryResponse:
    return EntryResponse(
        id=int(entry.id),
        title=entry.title or "",
        body=plain_text(entry.body),
        created_at=as_utc(entry.created_at),
        updated_at=as_utc(entry.updated_at) if entry.updated_at else None,
        category=category_summary(entry.category),
    )


def _list_item(entry: Entry, *, preview_len: int, needle: str) -> EntryListItemResponse:
    title = entry.title or ""
    body = plain_text(entry.body)
    return EntryListItemResponse(
        id=int(entry.id),
        title=title,
        display_title=title if title.strip() else _UNTITLED,
        body_preview=_build_match_snippet(body, preview_len, needle),
        word_count_no_ws=_count_no_whitespace(body),
        created_at=as_utc(entry.created_at),
        updated_at=as_utc(entry.updated_at) if entry.updated_at else None,
        category=category_summary(entry.category),
    )


@router.get("", response_model=EntryQueryResponse)
async def list_entries(
    category_id: int | None = Query(None, ge=1, description="按分类过滤（不传=全部分类）"),
    q: str | None = Query(None, max_length=200, description="关键字（标题/正文子串，大小写不敏感）"),
    limit: int = Query(200, ge=1, le=500, description="分页大小"),
    offset: int = Query(0, ge=0, description="分页 offset"),
    preview_len: int | None = Query(None, ge=0, le=1000, description="正文预览长度（字符数）"),
    db: AsyncSession = Depends(get_db),
):
    """主列表：created_at 倒序 + 分类/关键字筛选。"""
    started = time.perf_counter()

    store = EntryStore(db)
    try:
        entries = await store.list_all_entries()
    except BoxUpError as e:
        raise to_http_exception(e) from e

    matched = filter_entries(entries, category_id=category_id, search=q)
    total = len(matched)
    page = matched[offset : offset + limit]

    needle = normalize_search(q)
    effective_preview_len = settings.list_preview_len if preview_len is None else preview_len
    items = [_list_item(e, preview_len=effective_preview_len, needle=needle) for e in page]

    return EntryQueryResponse(
        count=total,
        limit=limit,
        offset=offset,
        has_more=(offset + len(items) < total),
        took_ms=int((time.perf_counter() - started) * 1000),
        category_id=category_id,
        q=needle or None,
        items=items,
    )


@router.post("", response_model=EntryResponse)
async def create_entry(req: EntryCreate, db: AsyncSession = Depends(get_db)):
    """新建记录（标题必填、分类必选）。"""
    store = EntryStore(db)
    try:
        entry = await store.create_entry(
            title=req.title,
            body=req.body,
            category_id=req.category_id,
            created_at=req.created_at,
        )
    except BoxUpError as e:
        raise to_http_exception(e) from e
    return _entry_response(entry)


@router.post("/batch-delete", response_model=EntryBatchDeleteResponse)
async def delete_entries_batch(req: EntryBatchDeleteRequest, db: AsyncSession = Depends(get_db)):
    """批量删除（列表多选滑动删除）；不存在的 id 直接忽略。"""
    if len(req.entry_ids) > _BATCH_MAX:
        raise HTTPException(status_code=422, detail=f"entry_ids too large (max {_BATCH_MAX})")

    store = EntryStore(db)
    try:
        deleted = await store.delete_entries(req.entry_ids)
    except BoxUpError as e:
        raise to_http_exception(e) from e
    return EntryBatchDeleteResponse(deleted=deleted)


@router.get("/{entry_id}", response_model=EntryResponse)
async def get_entry(entry_id: int, db: AsyncSession = Depends(get_db)):
    """获取单条记录详情"""
    store = EntryStore(db)
    try:
        entry = await store.get_entry(entry_id)
    except BoxUpError as e:
        raise to_http_exception(e) from e
    return _entry_response(entry)


@router.put("/{entry_id}", response_model=EntryResponse)
async def update_entry(entry_id: int, req: EntryUpdate, db: AsyncSession = Depends(get_db)):
    """修改记录（标题/正文/分类/时间，不传的字段保持不变）。"""
    store = EntryStore(db)
    try:
        entry = await store.update_entry(
            entry_id,
            title=req.title,
            body=req.body,
            category_id=req.category_id,
            created_at=req.created_at,
        )
    except BoxUpError as e:
        raise to_http_exception(e) from e
    return _entry_response(entry)


@router.delete("/{entry_id}")
async def delete_entry(entry_id: int, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    store = EntryStore(db)
    try:
        await store.delete_entry(entry_id)
    except BoxUpError as e:
        raise to_http_exception(e) from e
    return {"id": entry_id, "deleted": True}

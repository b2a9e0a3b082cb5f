"""分类管理 API"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import ICON_PRESETS, Category
from ..schemas import (
    CategoryCreate,
    CategoryDeleteResponse,
    CategoryResponse,
    CategoryUpdate,
    ColorRGBA,
    IconPresetResponse,
)
from ..services import EntryStore
from ..services.ranges import as_utc
from ..utils.errors import BoxUpError, to_http_exception

router = APIRouter(prefix="/categories", tags=["categories"])


def _build_category_response(category: Category, *, usage_count: int) -> CategoryResponse:
    return CategoryResponse(
        id=int(category.id),
        name=category.name,
        icon=category.icon,
        color=ColorRGBA.from_tuple(category.color),
        usage_count=int(usage_count or 0),
        created_at=as_utc(category.created_at) if category.created_at else None,
        updated_at=as_utc(category.updated_at) if category.updated_at else None,
    )


@router.get("", response_model=list[CategoryResponse])
async def list_categories(
    order: str = Query("asc", description="按名称排序：asc（筛选菜单）/ desc（分类管理页）"),
    db: AsyncSession = Depends(get_db),
):
    """分类列表（附带每个分类当前的记录数）。"""
    order_norm = (order or "").strip().lower() or "asc"
    if order_norm not in {"asc", "desc"}:
        raise HTTPException(status_code=422, detail="order must be asc or desc")

    store = EntryStore(db)
    try:
        categories = await store.list_categories(order=order_norm)
        counts = await store.category_usage_counts()
    except BoxUpError as e:
        raise to_http_exception(e) from e

    return [
        _build_category_response(c, usage_count=counts.get(int(c.id), 0))
        for c in categories
    ]


@router.get("/icons", response_model=list[IconPresetResponse])
async def list_icon_presets():
    """图标预设（编辑器里的图标选择器只能从这里选）。"""
    return [IconPresetResponse(system_name=name, label=label) for name, label in ICON_PRESETS]


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)):
    store = EntryStore(db)
    try:
        category = await store.get_category(category_id)
        counts = await store.category_usage_counts()
    except BoxUpError as e:
        raise to_http_exception(e) from e
    return _build_category_response(category, usage_count=counts.get(category_id, 0))


@router.post("", response_model=CategoryResponse)
async def create_category(req: CategoryCreate, db: AsyncSession = Depends(get_db)):
    """新建分类；重名（大小写不敏感）返回 409。"""
    store = EntryStore(db)
    try:
        category = await store.create_category(
            name=req.name,
            color=req.color.as_tuple() if req.color else None,
            icon=req.icon,
        )
    except BoxUpError as e:
        raise to_http_exception(e) from e
    return _build_category_response(category, usage_count=0)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(category_id: int, req: CategoryUpdate, db: AsyncSession = Depends(get_db)):
    """修改分类（名称/颜色/图标）；改成已存在的名称返回 409。"""
    store = EntryStore(db)
    try:
        category = await store.update_category(
            category_id,
            name=req.name,
            color=req.color.as_tuple() if req.color else None,
            icon=req.icon,
        )
        counts = await store.category_usage_counts()
    except BoxUpError as e:
        raise to_http_exception(e) from e
    return _build_category_response(category, usage_count=counts.get(category_id, 0))


@router.delete("/{category_id}", response_model=CategoryDeleteResponse)
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)):
    """删除分类：相关记录变为“未分类”，记录本身保留。"""
    store = EntryStore(db)
    try:
        detached = await store.delete_category(category_id)
    except BoxUpError as e:
        raise to_http_exception(e) from e
    return CategoryDeleteResponse(id=category_id, detached_entries=detached)

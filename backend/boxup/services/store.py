"""记录/分类的持久化读写（EntryStore）。

说明：
- 所有写操作先做输入校验（ValidationError / DuplicateNameError），校验不过不会触碰数据库；
- 数据库异常统一回滚并转换成 StoreFailure，调用方据此给出“保存/加载失败”提示；
- 删除分类只把相关记录的 category_id 置空（nullify），从不级联删除记录；
- 返回的 Entry 一律预加载 category，避免异步会话里触发懒加载。
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, cast

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database import engine
from ..models import DEFAULT_COLOR, DEFAULT_ICON, ICON_PRESETS, UNCLASSIFIED_COLOR, Category, Entry
from ..utils.errors import DuplicateNameError, NotFoundError, StoreFailure, ValidationError, exception_summary
from .ranges import as_utc, utc_now

logger = logging.getLogger(__name__)

_LOAD_FAILED = "Could not load data, please try again."
_SAVE_FAILED = "Could not save changes, please try again."

_NAME_MAX_LEN = 100
_TITLE_MAX_LEN = 255
_ICON_NAMES = {name for name, _ in ICON_PRESETS}


def normalize_category_name(name: str | None) -> str:
    return (name or "").strip()


def category_name_key(name: str | None) -> str:
    """名称唯一键：去首尾空白 + casefold（大小写不同也算重名）。"""
    return normalize_category_name(name).casefold()


def _clean_title(title: str | None) -> str:
    text = (title or "").strip()
    if not text:
        raise ValidationError("Title is required.", code="TITLE_REQUIRED")
    if len(text) > _TITLE_MAX_LEN:
        raise ValidationError(f"Title is too long (max {_TITLE_MAX_LEN}).", code="TITLE_TOO_LONG")
    return text


def _clean_name(name: str | None) -> str:
    text = normalize_category_name(name)
    if not text:
        raise ValidationError("Category name is required.", code="NAME_REQUIRED")
    if len(text) > _NAME_MAX_LEN:
        raise ValidationError(f"Category name is too long (max {_NAME_MAX_LEN}).", code="NAME_TOO_LONG")
    return text


def _clean_color(color: Iterable[int] | None) -> tuple[int, int, int, int]:
    if color is None:
        return DEFAULT_COLOR
    try:
        channels = [int(c) for c in color]
    except (TypeError, ValueError) as e:
        raise ValidationError("Color channels must be integers.", code="COLOR_INVALID") from e
    if len(channels) == 3:
        channels.append(255)
    if len(channels) != 4:
        raise ValidationError("Color must have 3 or 4 channels.", code="COLOR_INVALID")
    if any(c < 0 or c > 255 for c in channels):
        raise ValidationError("Color channels must be within 0-255.", code="COLOR_INVALID")
    rgba = cast(tuple[int, int, int, int], tuple(channels))
    if rgba == UNCLASSIFIED_COLOR:
        raise ValidationError("This color is reserved for uncategorized entries.", code="COLOR_RESERVED")
    return rgba


def _clean_icon(icon: str | None) -> str:
    value = (icon or "").strip()
    if not value:
        return DEFAULT_ICON
    if value not in _ICON_NAMES:
        raise ValidationError(f"Unknown icon: {value}", code="ICON_UNKNOWN")
    return value


def _db_datetime(value: datetime) -> datetime:
    """写入/比较用的时间：统一 UTC；SQLite 不存时区，转成 naive UTC 避免字符串比较错位。"""
    value_utc = as_utc(value)
    if engine.dialect.name == "sqlite":
        return value_utc.replace(tzinfo=None)
    return value_utc


class EntryStore:
    def __init__(self, db: AsyncSession, *, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    @asynccontextmanager
    async def _guard(self, action: str, message: str):
        try:
            yield
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("[STORE] %s failed: %s", action, exception_summary(e))
            raise StoreFailure(message) from e

    # ---- entries: read ----

    def _entry_query(self):
        return (
            select(Entry)
            .options(selectinload(Entry.category))
            .execution_options(populate_existing=True)
        )

    async def _fetch_entry(self, entry_id: int) -> Entry | None:
        return await self.db.scalar(
            self._entry_query().where(Entry.id == entry_id)
        )

    async def list_all_entries(self) -> list[Entry]:
        """主列表数据源：created_at 倒序（同刻按 id 倒序保证稳定）。"""
        async with self._guard("list_all_entries", _LOAD_FAILED):
            rows = await self.db.scalars(
                self._entry_query().order_by(Entry.created_at.desc(), Entry.id.desc())
            )
            return list(rows.all())

    async def query_entries_in_range(self, start: datetime, end: datetime) -> list[Entry]:
        """统计数据源：created_at ∈ [start, end)。"""
        async with self._guard("query_entries_in_range", _LOAD_FAILED):
            rows = await self.db.scalars(
                self._entry_query()
                .where(
                    Entry.created_at >= _db_datetime(start),
                    Entry.created_at < _db_datetime(end),
                )
                .order_by(Entry.created_at.desc(), Entry.id.desc())
            )
            return list(rows.all())

    async def get_entry(self, entry_id: int) -> Entry:
        async with self._guard("get_entry", _LOAD_FAILED):
            entry = await self._fetch_entry(entry_id)
        if entry is None:
            raise NotFoundError("Entry not found")
        return entry

    async def entry_overview(self) -> dict[str, Any]:
        async with self._guard("entry_overview", _LOAD_FAILED):
            total_entries = await self.db.scalar(select(func.count()).select_from(Entry))
            uncategorized = await self.db.scalar(
                select(func.count()).select_from(Entry).where(Entry.category_id.is_(None))
            )
            total_categories = await self.db.scalar(select(func.count()).select_from(Category))
            last_entry_at = await self.db.scalar(select(func.max(Entry.created_at)))
        return {
            "total_entries": int(total_entries or 0),
            "uncategorized_entries": int(uncategorized or 0),
            "total_categories": int(total_categories or 0),
            "last_entry_at": as_utc(last_entry_at) if last_entry_at is not None else None,
        }

    # ---- entries: write ----

    async def _require_category(self, category_id: int | None) -> Category:
        if category_id is None:
            raise ValidationError("Select a category.", code="CATEGORY_REQUIRED")
        async with self._guard("load_category", _LOAD_FAILED):
            category = await self.db.get(Category, category_id)
        if category is None:
            raise ValidationError("The selected category no longer exists.", code="CATEGORY_NOT_FOUND")
        return category

    async def create_entry(
        self,
        *,
        title: str | None,
        body: str | None,
        category_id: int | None,
        created_at: datetime | None = None,
    ) -> Entry:
        clean_title = _clean_title(title)
        category = await self._require_category(category_id)

        entry = Entry(
            title=clean_title,
            body=body or "",
            created_at=_db_datetime(created_at or self.clock()),
            category_id=category.id,
        )
        async with self._guard("create_entry", _SAVE_FAILED):
            self.db.add(entry)
            await self.db.commit()
            created = await self._fetch_entry(entry.id)
        logger.info("[STORE] Entry created id=%s category_id=%s", entry.id, category.id)
        return cast(Entry, created)

    async def update_entry(
        self,
        entry_id: int,
        *,
        title: str | None = None,
        body: str | None = None,
        category_id: int | None = None,
        created_at: datetime | None = None,
    ) -> Entry:
        """就地修改；传 None 的字段保持不变（编辑器要求必须有分类，因此不支持改回未分类）。"""
        clean_title = _clean_title(title) if title is not None else None
        category = await self._require_category(category_id) if category_id is not None else None

        entry = await self.get_entry(entry_id)
        async with self._guard("update_entry", _SAVE_FAILED):
            if clean_title is not None:
                entry.title = clean_title
            if body is not None:
                entry.body = body
            if category is not None:
                entry.category_id = category.id
            if created_at is not None:
                entry.created_at = _db_datetime(created_at)
            await self.db.commit()
            updated = await self._fetch_entry(entry_id)
        if updated is None:
            raise NotFoundError("Entry not found")
        return updated

    async def delete_entry(self, entry_id: int) -> None:
        async with self._guard("delete_entry", _SAVE_FAILED):
            result = await self.db.execute(delete(Entry).where(Entry.id == entry_id))
            deleted = int(getattr(cast(Any, result), "rowcount", 0) or 0)
            if deleted <= 0:
                await self.db.rollback()
            else:
                await self.db.commit()
        if deleted <= 0:
            raise NotFoundError("Entry not found")

    async def delete_entries(self, entry_ids: Iterable[Any]) -> int:
        """批量删除；非法/重复/不存在的 id 直接忽略，返回实际删除条数。"""
        ids: list[int] = []
        seen: set[int] = set()
        for raw in entry_ids:
            try:
                eid = int(raw)
            except (TypeError, ValueError):
                continue
            if eid <= 0 or eid in seen:
                continue
            seen.add(eid)
            ids.append(eid)

        if not ids:
            return 0

        async with self._guard("delete_entries", _SAVE_FAILED):
            result = await self.db.execute(delete(Entry).where(Entry.id.in_(ids)))
            deleted = int(getattr(cast(Any, result), "rowcount", 0) or 0)
            await self.db.commit()
        return deleted

    # ---- categories ----

    async def list_categories(self, *, order: str = "asc") -> list[Category]:
        name_order = Category.name_key.desc() if order == "desc" else Category.name_key.asc()
        async with self._guard("list_categories", _LOAD_FAILED):
            rows = await self.db.scalars(select(Category).order_by(name_order, Category.id.asc()))
            return list(rows.all())

    async def get_category(self, category_id: int) -> Category:
        async with self._guard("get_category", _LOAD_FAILED):
            category = await self.db.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    async def category_usage_counts(self) -> dict[int | None, int]:
        """每个分类当前挂了多少条记录（显式聚合查询，不缓存；None = 未分类）。"""
        async with self._guard("category_usage_counts", _LOAD_FAILED):
            result = await self.db.execute(
                select(Entry.category_id, func.count()).group_by(Entry.category_id)
            )
            return {
                (int(cid) if cid is not None else None): int(n or 0)
                for cid, n in result.all()
            }

    async def _ensure_name_available(self, name: str, *, exclude_id: int | None = None) -> None:
        query = select(Category.id).where(Category.name_key == category_name_key(name))
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        async with self._guard("check_category_name", _LOAD_FAILED):
            existing = await self.db.scalar(query)
        if existing is not None:
            raise DuplicateNameError(name)

    async def create_category(
        self,
        *,
        name: str | None,
        color: Iterable[int] | None = None,
        icon: str | None = None,
    ) -> Category:
        clean_name = _clean_name(name)
        r, g, b, a = _clean_color(color)
        clean_icon = _clean_icon(icon)
        await self._ensure_name_available(clean_name)

        category = Category(
            name=clean_name,
            name_key=category_name_key(clean_name),
            icon=clean_icon,
            r=r,
            g=g,
            b=b,
            a=a,
        )
        async with self._guard("create_category", _SAVE_FAILED):
            self.db.add(category)
            try:
                await self.db.flush()
            except IntegrityError as e:
                # 并发写入时唯一约束兜底
                await self.db.rollback()
                raise DuplicateNameError(clean_name) from e
            await self.db.commit()
            await self.db.refresh(category)
        logger.info("[STORE] Category created id=%s", category.id)
        return category

    async def update_category(
        self,
        category_id: int,
        *,
        name: str | None = None,
        color: Iterable[int] | None = None,
        icon: str | None = None,
    ) -> Category:
        clean_name = _clean_name(name) if name is not None else None
        rgba = _clean_color(color) if color is not None else None
        clean_icon = _clean_icon(icon) if icon is not None else None

        category = await self.get_category(category_id)
        if clean_name is not None:
            await self._ensure_name_available(clean_name, exclude_id=category_id)

        async with self._guard("update_category", _SAVE_FAILED):
            if clean_name is not None:
                category.name = clean_name
                category.name_key = category_name_key(clean_name)
            if rgba is not None:
                category.r, category.g, category.b, category.a = rgba
            if clean_icon is not None:
                category.icon = clean_icon
            try:
                await self.db.flush()
            except IntegrityError as e:
                await self.db.rollback()
                raise DuplicateNameError(str(clean_name)) from e
            await self.db.commit()
            await self.db.refresh(category)
        return category

    async def delete_category(self, category_id: int) -> int:
        """删除分类并把引用它的记录置为未分类，返回被置空的记录数。"""
        category = await self.get_category(category_id)
        async with self._guard("delete_category", _SAVE_FAILED):
            result = await self.db.execute(
                update(Entry)
                .where(Entry.category_id == category_id)
                .values(category_id=None)
            )
            detached = int(getattr(cast(Any, result), "rowcount", 0) or 0)
            await self.db.delete(category)
            await self.db.commit()
        logger.info("[STORE] Category deleted id=%s detached_entries=%s", category_id, detached)
        return detached

"""主列表筛选：分类 + 关键字（标题/正文子串，大小写不敏感）。"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


def plain_text(value: str | None) -> str:
    """正文的纯文本投影；None 视为空串。"""
    return "" if value is None else str(value)


def normalize_search(search: str | None) -> str:
    """去掉首尾空白/换行后转小写；空串表示“不按关键字过滤”。"""
    return (search or "").strip().lower()


def category_id_of(entry: Any) -> int | None:
    category = getattr(entry, "category", None)
    if category is not None and category.id is not None:
        return int(category.id)
    return entry.category_id


def entry_matches(entry: Any, needle: str) -> bool:
    title = plain_text(entry.title).lower()
    body = plain_text(entry.body).lower()
    return needle in title or needle in body


def filter_entries(
    entries: Sequence[Any],
    category_id: int | None = None,
    search: str | None = None,
) -> list[Any]:
    """纯函数：不做 I/O，保持输入顺序（上游已按 created_at 倒序）。"""
    result = list(entries)

    if category_id is not None:
        result = [e for e in result if category_id_of(e) == category_id]

    needle = normalize_search(search)
    if not needle:
        return result

    return [e for e in result if entry_matches(e, needle)]

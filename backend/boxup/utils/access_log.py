"""HTTP 访问日志：每个请求一行 logfmt，按天写入 <repo>/logs/YYYY-MM-DD.logs。"""

from __future__ import annotations

import threading
import time
from dataclasses import astuple, dataclass, fields
from datetime import datetime
from pathlib import Path
from typing import Any

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

from .. import config as config_module
from ..config import settings


_WRITE_LOCK = threading.Lock()
_VALUE_MAX_LEN = 800
_NEEDS_QUOTES = ('"', "=", "\\")


def logfmt_value(value: Any) -> str:
    """单个字段值 -> logfmt 文本；控制字符转义，含空白/引号/等号时加引号。"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)

    text = str(value).replace("\r", "\\r").replace("\n", "\\n").replace("\t", "\\t")
    if len(text) > _VALUE_MAX_LEN:
        text = f"{text[:_VALUE_MAX_LEN]}…"
    if text and not any(ch.isspace() or ch in _NEEDS_QUOTES for ch in text):
        return text
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f"\"{escaped}\""


def to_logfmt(pairs: list[tuple[str, Any]]) -> str:
    """按给定顺序拼成一行 key=value；None 字段省略。"""
    return " ".join(f"{key}={logfmt_value(value)}" for key, value in pairs if value is not None)


@dataclass(frozen=True)
class AccessRecord:
    """一次 HTTP 请求的访问记录（字段顺序即落盘顺序）。"""

    ts: str
    rid: str | None
    method: str
    path: str
    query: str | None
    status: int
    dur_ms: int
    ip: str | None
    ua: str | None
    error: str | None = None

    def to_line(self) -> str:
        names = [f.name for f in fields(self)]
        return to_logfmt(list(zip(names, astuple(self))))


def _client_ip(request: Request) -> str | None:
    # 反向代理后取 X-Forwarded-For 的第一跳
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return request.client.host if request.client else None


def build_record(
    request: Request,
    *,
    status_code: int,
    duration_ms: int,
    error: str | None = None,
    request_id: str | None = None,
) -> AccessRecord:
    query = request.url.query if settings.access_log_include_query else None
    return AccessRecord(
        ts=datetime.now().astimezone().isoformat(timespec="seconds"),
        rid=request_id,
        method=request.method,
        path=request.url.path,
        query=query or None,
        status=status_code,
        dur_ms=duration_ms,
        ip=_client_ip(request),
        ua=request.headers.get("user-agent"),
        error=error,
    )


def daily_log_path(now: datetime | None = None) -> Path:
    log_dir = Path(settings.access_log_dir)
    if not log_dir.is_absolute():
        log_dir = (config_module._REPO_ROOT / log_dir).resolve()
    dt = now or datetime.now().astimezone()
    return log_dir / f"{dt.strftime('%Y-%m-%d')}.logs"


def _append_line_sync(line: str, now: datetime | None) -> Path:
    path = daily_log_path(now)
    path.parent.mkdir(parents=True, exist_ok=True)
    with _WRITE_LOCK:
        with path.open("a", encoding="utf-8", newline="\n") as f:
            f.write(line.rstrip("\n") + "\n")
    return path


async def append_line(line: str, *, now: datetime | None = None) -> Path:
    return await run_in_threadpool(_append_line_sync, line, now)


def should_ignore(path: str) -> bool:
    ignored = {p.strip() for p in (settings.access_log_ignore_paths or "").split(",") if p.strip()}
    return path in ignored


async def log_http_request(
    request: Request,
    *,
    status_code: int,
    duration_ms: int,
    error: str | None = None,
    request_id: str | None = None,
) -> None:
    if not settings.access_log_enabled or should_ignore(request.url.path):
        return
    record = build_record(
        request,
        status_code=status_code,
        duration_ms=duration_ms,
        error=error,
        request_id=request_id,
    )
    await append_line(record.to_line())


class AccessLogTimer:
    """请求耗时计时（ms）。"""

    def __init__(self) -> None:
        self._start = time.perf_counter()

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._start) * 1000)

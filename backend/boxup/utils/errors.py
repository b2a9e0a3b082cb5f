from __future__ import annotations

import re

from fastapi import HTTPException


_CONTROL_RE = re.compile(r"[\r\n\t]+")


class BoxUpError(Exception):
    """业务异常基类：code 供前端分支判断，message 供直接展示。"""

    code = "BOXUP_ERROR"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(BoxUpError):
    """用户输入不合法（空标题、未选分类、空分类名等），写入前即失败。"""

    code = "VALIDATION_ERROR"


class DuplicateNameError(ValidationError):
    """分类名已被占用（新建或重命名时）。"""

    code = "DUPLICATE_NAME"

    def __init__(self, name: str):
        super().__init__(f"Category name already exists: {name}")
        self.name = name


class NotFoundError(BoxUpError):
    """编辑/删除的目标已不存在（例如在其他视图里被删掉了）。"""

    code = "NOT_FOUND"


class StoreFailure(BoxUpError):
    """持久化读写失败（磁盘/锁/损坏等），会话已回滚。"""

    code = "STORE_FAILURE"


def _sanitize_text(text: str, *, max_len: int) -> str:
    """把异常文本压缩成更适合日志/落盘的短字符串（避免换行、控制字符、超长）。"""
    if max_len <= 0:
        return ""
    cleaned = _CONTROL_RE.sub(" ", text).strip()
    if len(cleaned) > max_len:
        return f"{cleaned[:max_len]}…"
    return cleaned


def exception_summary(exc: BaseException, *, max_len: int = 200) -> str:
    """生成对外更安全的异常摘要：默认仅保留异常类型 + 截断后的消息。"""
    name = type(exc).__name__
    msg = _sanitize_text(str(exc), max_len=max_len)
    return f"{name}: {msg}" if msg else name


def to_http_exception(exc: BoxUpError) -> HTTPException:
    """业务异常 -> HTTP 响应：409 重名 / 422 校验 / 404 不存在 / 503 存储失败。"""
    if isinstance(exc, DuplicateNameError):
        status_code = 409
    elif isinstance(exc, ValidationError):
        status_code = 422
    elif isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, StoreFailure):
        status_code = 503
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})

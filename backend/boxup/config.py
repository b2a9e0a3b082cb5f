from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_APP_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _APP_DIR.parent
_REPO_ROOT = _BACKEND_DIR.parent

_USAGE_RANGE_TOKENS = ("24h", "7d", "30d")


def _load_root_dotenv() -> None:
    """
    统一从仓库根目录读取 `.env`（并保证其优先级最高）。

    说明：
    - 启动脚本通常会 `cd backend`，导致工具默认只会找子目录下的 `.env`。
    - 这里显式加载：先加载 `backend/.env`，再加载根目录 `.env`，并且 `override=True`，确保根目录优先。
    """

    backend_env = _BACKEND_DIR / ".env"
    root_env = _REPO_ROOT / ".env"

    for env_file in (backend_env, root_env):
        if env_file.exists():
            load_dotenv(env_file, override=True, encoding="utf-8")


class Settings(BaseSettings):
    """Application settings"""

    # Server（供 run.py 使用）
    backend_host: str = "0.0.0.0"
    backend_port: int = 31020
    backend_reload: bool = True

    # Database
    # 优先使用 DATABASE_URL；不配置时再使用 SQLITE_DB_PATH 生成 sqlite URL
    database_url: str | None = None
    sqlite_db_path: str = "boxup.db"

    # API
    api_prefix: str = "/api"
    debug: bool = True
    # 是否输出 SQLAlchemy 的 SQL 日志；排查 SQL/事务时再临时打开
    sql_echo: bool = False

    # CORS
    # - 逗号分隔（例如：http://localhost:5173,http://127.0.0.1:5173）
    # - 默认 "*" 表示允许所有来源（此时会强制关闭 allow_credentials）
    cors_allow_origins: str = "*"
    cors_allow_credentials: bool = False
    cors_allow_methods: str = "*"
    cors_allow_headers: str = "*"

    # Access Log（本地访问日志，按天落盘）
    # - 文件：<repo>/logs/YYYY-MM-DD.logs
    access_log_enabled: bool = True
    access_log_dir: str = "logs"
    # 逗号分隔：完全匹配 path（不含 query）时跳过记录
    access_log_ignore_paths: str = "/health"
    # 是否记录 querystring（搜索词可能比较私密，默认关闭）
    access_log_include_query: bool = False

    # Stats / List
    # 统计页默认时间窗口：24h | 7d | 30d
    stats_default_range: str = "7d"
    # 列表预览长度（字符数）
    list_preview_len: int = 120
    # 未分类桶的展示名
    unclassified_label: str = "Uncategorized"

    @model_validator(mode="after")
    def _build_database_url_if_missing(self) -> "Settings":
        if self.database_url and self.database_url.strip():
            return self

        db_path = Path(self.sqlite_db_path)
        if not db_path.is_absolute():
            db_path = (_REPO_ROOT / db_path).resolve()

        self.database_url = f"sqlite+aiosqlite:///{db_path.as_posix()}"
        return self

    @model_validator(mode="after")
    def _normalize_stats(self) -> "Settings":
        token = (self.stats_default_range or "").strip().lower()
        if token not in _USAGE_RANGE_TOKENS:
            token = "7d"
        self.stats_default_range = token

        if int(self.list_preview_len or 0) < 0:
            self.list_preview_len = 0

        if not (self.unclassified_label or "").strip():
            self.unclassified_label = "Uncategorized"
        return self

    model_config = SettingsConfigDict(
        case_sensitive=False
    )


_load_root_dotenv()
settings = Settings()

"""配置模块：加载环境文件并缓存网盘服务的运行设置。"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _project_root() -> Path:
    """包含 ``app`` 目录的最近一级祖先目录，即项目根目录。"""
    here = Path(__file__).resolve()
    return next((p for p in here.parents if (p / "app").is_dir()), here.parent)


BASE_DIR = _project_root()


def _as_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _env_files() -> List[tuple[Path, bool]]:
    """按加载顺序返回 ``(环境文件, 是否覆盖已有变量)``。

    ``ENV_FILE`` 指定时只加载它；否则先读 ``.env``，
    再按 ``ENVIRONMENT``（DEBUG 时默认 development）叠加 ``.env.<name>``。
    """
    explicit = os.getenv("ENV_FILE")
    if explicit:
        return [(BASE_DIR / explicit, True)]

    files = [(BASE_DIR / ".env", False)]
    environment = os.getenv("ENVIRONMENT") or ("development" if _as_bool(os.getenv("DEBUG")) else None)
    if environment:
        name = environment if environment.startswith(".env") else f".env.{environment}"
        files.append((BASE_DIR / name, True))
    return files


for _path, _override in _env_files():
    if _path.is_file():
        load_dotenv(_path, override=_override, encoding="utf-8")


class Settings(BaseSettings):
    """
    网盘服务运行所需的全部配置项，每个字段都可以通过环境变量重写。
    数据库、令牌、日志、对象存储与目录树相关的阈值都集中在这里。
    """

    project_name: str = Field(default="Droply API", alias="PROJECT_NAME")
    api_v1_str: str = Field(default="/api/v1", alias="API_V1_STR")
    debug: bool = Field(default=False, alias="DEBUG")

    # 显式提供 DATABASE_URL 时优先使用（测试环境使用 SQLite）
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    database_host: str = Field(default="localhost", alias="DATABASE_HOST")
    database_port: int = Field(default=5432, alias="DATABASE_PORT")
    database_user: str = Field(default="postgres", alias="DATABASE_USER")
    database_password: str = Field(default="postgres", alias="DATABASE_PASSWORD")
    database_name: str = Field(default="droply", alias="DATABASE_NAME")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    jwt_secret_key: str = Field(default="changeme", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")
    log_file_name: str = Field(default="app.log", alias="LOG_FILE_NAME")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    app_port: int = Field(default=8000, alias="APP_PORT")
    timezone: str = Field(default="UTC", alias="TIMEZONE")

    # 对象存储：LOCAL 写本地目录并通过静态路由对外提供；S3 走 boto3
    storage_type: str = Field(default="LOCAL", alias="STORAGE_TYPE")
    storage_local_root: str = Field(default="storage", alias="STORAGE_LOCAL_ROOT")
    storage_public_base_url: str = Field(default="http://127.0.0.1:8000", alias="STORAGE_PUBLIC_BASE_URL")
    storage_public_mount: str = Field(default="/media", alias="STORAGE_PUBLIC_MOUNT")
    storage_path_prefix: str = Field(default="droply", alias="STORAGE_PATH_PREFIX")

    s3_bucket: Optional[str] = Field(default=None, alias="S3_BUCKET")
    s3_region: Optional[str] = Field(default=None, alias="S3_REGION")
    s3_access_key_id: Optional[str] = Field(default=None, alias="S3_ACCESS_KEY_ID")
    s3_secret_access_key: Optional[str] = Field(default=None, alias="S3_SECRET_ACCESS_KEY")
    s3_endpoint_url: Optional[str] = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_custom_domain: Optional[str] = Field(default=None, alias="S3_CUSTOM_DOMAIN")

    # 上传大小在 HTTP 边界校验，默认 20MB
    max_upload_bytes: int = Field(default=20 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    thumbnail_width: int = Field(default=256, alias="THUMBNAIL_WIDTH")

    # 目录树行为
    trash_cascade: bool = Field(default=False, alias="TRASH_CASCADE")
    path_max_depth: int = Field(default=256, alias="PATH_MAX_DEPTH")

    model_config = SettingsConfigDict(extra="ignore")

    @property
    def sql_database_url(self) -> str:
        """``DATABASE_URL`` 优先；未设置时由各项 PostgreSQL 参数拼出 psycopg2 连接串。"""
        return self.database_url or (
            f"postgresql+psycopg2://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @staticmethod
    def _absolute(raw: str) -> Path:
        # 相对路径一律相对项目根目录
        path = Path(raw)
        return path if path.is_absolute() else BASE_DIR / path

    @property
    def log_directory(self) -> Path:
        return self._absolute(self.log_dir)

    @property
    def log_file_path(self) -> Path:
        return self.log_directory / self.log_file_name

    @property
    def storage_local_directory(self) -> Path:
        """LOCAL 存储根目录（绝对路径），同时也是静态文件挂载目录。"""
        return self._absolute(self.storage_local_root)

    @property
    def timezone_info(self) -> ZoneInfo:
        """``TIMEZONE`` 对应的时区；名称无法识别时按 UTC 处理。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")


@lru_cache
def get_settings() -> Settings:
    """进程级单例，首次调用时读取环境变量。"""
    return Settings()

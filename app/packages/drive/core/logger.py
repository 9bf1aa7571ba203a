"""日志配置：控制台彩色级别、可选 JSON 行格式，以及按天滚动的文件日志。

所有记录都会带上当前请求的 ``request_id``（由中间件写入上下文变量）。
"""

import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from .config import Settings, get_settings

LOGGER_NAME = "droply"
_MODULE = __name__

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id_ctx.get() or "-"
        return True


class _TZFormatter(logging.Formatter):
    """时间戳按 ``TIMEZONE`` 渲染，默认精确到毫秒。"""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:  # noqa: N802
        dt = datetime.fromtimestamp(record.created, get_settings().timezone_info)
        return dt.strftime(datefmt) if datefmt else dt.isoformat(sep=" ", timespec="milliseconds")


class ColorFormatter(_TZFormatter):
    """只给级别名上色，消息本体保持原样，便于复制。"""

    LEVEL_COLORS = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "1;41",
    }

    def __init__(self, fmt: str, datefmt: Optional[str] = None, use_colors: Optional[bool] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = sys.stderr.isatty() if use_colors is None else use_colors

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if color is None:
            return super().format(record)
        original = record.levelname
        record.levelname = f"\033[{color}m{original}\033[0m"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JsonFormatter(_TZFormatter):
    """每条记录输出一行 JSON，供日志采集系统解析。"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", None),
            "where": f"{record.module}:{record.lineno}",
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _handlers(settings: Settings) -> Dict[str, Dict[str, Any]]:
    console_fmt = "json" if settings.log_json else "console"
    file_fmt = "json" if settings.log_json else "plain"
    return {
        "console": {
            "class": "logging.StreamHandler",
            "level": settings.log_level,
            "formatter": console_fmt,
            "filters": ["request_id"],
        },
        "file": {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "level": settings.log_level,
            "formatter": file_fmt,
            "filters": ["request_id"],
            "filename": str(settings.log_file_path),
            "when": "midnight",
            "backupCount": 14,
            "encoding": "utf-8",
            "delay": True,
        },
    }


def setup_logging() -> None:
    """按当前配置安装日志处理器；uvicorn 与 droply 日志共用同一组输出。"""
    settings = get_settings()
    settings.log_directory.mkdir(parents=True, exist_ok=True)

    line = "%(asctime)s %(levelname)s [%(name)s] [%(request_id)s] %(message)s"
    targets = ["console", "file"]
    owned = {"level": settings.log_level, "handlers": targets, "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_id": {"()": f"{_MODULE}.RequestIdFilter"}},
            "formatters": {
                "console": {"()": f"{_MODULE}.ColorFormatter", "fmt": line},
                "plain": {"()": f"{_MODULE}._TZFormatter", "fmt": line},
                "json": {"()": f"{_MODULE}.JsonFormatter"},
            },
            "handlers": _handlers(settings),
            "loggers": {
                name: dict(owned)
                for name in (LOGGER_NAME, "uvicorn", "uvicorn.error", "uvicorn.access")
            },
            "root": {"level": settings.log_level, "handlers": targets},
        }
    )


logger = logging.getLogger(LOGGER_NAME)

"""网盘业务包：文件树、收藏、回收站与对象存储上传。"""

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.packages.types import AppPackage

from .api.v1 import api_router
from .core.config import get_settings
from .core.exceptions import generic_exception_handler, http_exception_handler
from .core.logger import logger, setup_logging
from .core.responses import create_response
from .db.init_db import init_db


def mount_local_storage(app: FastAPI) -> None:
    """LOCAL 存储模式下，由应用直接对外提供已上传的文件与缩略图。"""
    settings = get_settings()
    if (settings.storage_type or "").upper() != "LOCAL":
        return
    app.mount(
        settings.storage_public_mount,
        StaticFiles(directory=str(settings.storage_local_directory), check_dir=False),
        name="media",
    )


package = AppPackage(
    name="drive",
    api_router=api_router,
    get_settings=get_settings,
    setup_logging=setup_logging,
    logger=logger,
    init_db=init_db,
    create_response=create_response,
    http_exception_handler=http_exception_handler,
    generic_exception_handler=generic_exception_handler,
    configure_app=mount_local_storage,
)

__all__ = ["package", "api_router", "get_settings"]

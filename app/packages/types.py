"""业务包描述：主应用只通过这里声明的入口与业务包交互。"""

from __future__ import annotations

from dataclasses import dataclass
from logging import Logger
from typing import Any, Callable, Optional

from fastapi import APIRouter, FastAPI


@dataclass(frozen=True)
class AppPackage:
    name: str
    api_router: APIRouter
    get_settings: Callable[[], Any]
    setup_logging: Callable[[], None]
    logger: Logger
    init_db: Callable[[], None]
    create_response: Callable[..., dict]
    http_exception_handler: Callable[..., Any]
    generic_exception_handler: Callable[..., Any]
    # 路由挂载完成后的额外装配（静态目录等），可选
    configure_app: Optional[Callable[[FastAPI], None]] = None

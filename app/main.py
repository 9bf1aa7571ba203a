"""应用入口：按当前启用的业务包装配 FastAPI 实例。"""

from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.middleware.request_id import RequestIdMiddleware
from app.packages import get_active_package
from app.packages.types import AppPackage


def _jsonable_errors(obj: Any) -> Any:
    """校验错误里可能夹带异常对象或字节串，转换成可序列化的结构。"""
    if isinstance(obj, dict):
        return {key: _jsonable_errors(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable_errors(item) for item in obj]
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    if isinstance(obj, Exception):
        return str(obj)
    return obj


def create_app(package: AppPackage) -> FastAPI:
    package.setup_logging()
    settings = package.get_settings()
    logger = package.logger
    create_response = package.create_response

    application = FastAPI(title=settings.project_name, debug=settings.debug)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    application.add_middleware(RequestIdMiddleware)

    application.add_exception_handler(HTTPException, package.http_exception_handler)
    application.add_exception_handler(Exception, package.generic_exception_handler)

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):  # pragma: no cover - framework glue
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=create_response(
                "请求参数验证失败", _jsonable_errors(exc.errors()), status.HTTP_422_UNPROCESSABLE_ENTITY
            ),
        )

    @application.on_event("startup")
    async def startup_event() -> None:
        package.init_db()
        logger.info("SUCCESS - %s running at http://127.0.0.1:%s", settings.project_name, settings.app_port)

    @application.get("/health")
    async def health_check() -> dict:
        """探活接口。"""
        return create_response("OK", {"status": "healthy"})

    application.include_router(package.api_router, prefix=settings.api_v1_str)
    if package.configure_app is not None:
        package.configure_app(application)
    return application


app = create_app(get_active_package())

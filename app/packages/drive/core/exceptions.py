"""异常处理模块：定义统一的业务异常、错误分类与响应格式。"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.packages.drive.core.constants import (
    HTTP_STATUS_BAD_GATEWAY,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_UNAUTHORIZED,
    HTTP_STATUS_UNSUPPORTED_MEDIA_TYPE,
)
from app.packages.drive.core.logger import logger


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data

    @property
    def msg(self) -> str:
        return self.detail


class UnauthorizedError(AppException):
    """身份缺失，或与调用方声明的 userId 不一致。"""

    def __init__(self, msg: str = "未授权访问", data=None) -> None:
        super().__init__(msg, HTTP_STATUS_UNAUTHORIZED, data)


class NotFoundError(AppException):
    """按 (id, user_id) 未命中任何记录。"""

    def __init__(self, msg: str = "文件或文件夹不存在", data=None) -> None:
        super().__init__(msg, HTTP_STATUS_NOT_FOUND, data)


class ValidationError(AppException):
    """名称为空、缺少文件、目录成环等输入错误。"""

    def __init__(self, msg: str, data=None) -> None:
        super().__init__(msg, HTTP_STATUS_BAD_REQUEST, data)


class UnsupportedTypeError(AppException):
    """上传的 MIME 类型不在允许范围内。"""

    def __init__(self, msg: str = "仅支持图片与 PDF 文件", data=None) -> None:
        super().__init__(msg, HTTP_STATUS_UNSUPPORTED_MEDIA_TYPE, data)


class StorageUploadError(AppException):
    """对象存储上传失败。"""

    def __init__(self, msg: str = "文件上传到存储失败", data=None) -> None:
        super().__init__(msg, HTTP_STATUS_BAD_GATEWAY, data)


class ConflictError(AppException):
    """并发写入冲突：记录在读取之后已被其他请求修改。"""

    def __init__(self, msg: str = "记录已被修改，请刷新后重试", data=None) -> None:
        super().__init__(msg, HTTP_STATUS_CONFLICT, data)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = {"msg": exc.detail, "data": getattr(exc, "data", None), "code": exc.status_code}
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：记录堆栈并将未捕获异常转换为标准的 500 响应结构。"""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    payload = {
        "msg": "服务器内部错误",
        "data": None,
        "code": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)

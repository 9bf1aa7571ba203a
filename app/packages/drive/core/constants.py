"""常量定义：HTTP 状态码、令牌类型与目录树相关的固定取值。"""

from typing import Final

HTTP_STATUS_OK: Final = 200
HTTP_STATUS_BAD_REQUEST: Final = 400
HTTP_STATUS_UNAUTHORIZED: Final = 401
HTTP_STATUS_NOT_FOUND: Final = 404
HTTP_STATUS_CONFLICT: Final = 409
HTTP_STATUS_PAYLOAD_TOO_LARGE: Final = 413
HTTP_STATUS_UNSUPPORTED_MEDIA_TYPE: Final = 415
HTTP_STATUS_BAD_GATEWAY: Final = 502

ACCESS_TOKEN_TYPE: Final = "bearer"

# 目录节点的 type 字段取值
FOLDER_TYPE: Final = "folder"

# 列表上限
RECENT_LIMIT: Final = 50
SEARCH_LIMIT: Final = 20

# 允许上传的 MIME：image/* 与 application/pdf
ALLOWED_MIME_PREFIXES: Final = ("image/",)
ALLOWED_MIME_TYPES: Final = frozenset({"application/pdf"})

# 批量操作单项结果
BULK_STATUS_SUCCESS: Final = "success"
BULK_STATUS_FAILURE: Final = "failure"

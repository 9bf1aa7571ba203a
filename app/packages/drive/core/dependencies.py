"""依赖注入模块：封装 FastAPI 中复用度高的依赖函数。"""

from collections.abc import Generator
from typing import Optional

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.packages.drive.core.constants import ACCESS_TOKEN_TYPE
from app.packages.drive.core.exceptions import UnauthorizedError
from app.packages.drive.core.security import decode_token, extract_user_id
from app.packages.drive.db import session as db_session

security_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """生成一个数据库会话，并在请求结束后自动关闭。"""
    db = db_session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    claimed_user_id: Optional[str] = Query(None, alias="userId"),
) -> str:
    """解析 ``Authorization`` 头部并返回当前用户标识。

    请求若额外携带 ``userId`` 查询参数，则必须与令牌中的身份一致，否则按未授权处理。
    """
    if not credentials:
        raise UnauthorizedError("缺少认证信息")

    if credentials.scheme.lower() != ACCESS_TOKEN_TYPE:
        raise UnauthorizedError("认证类型无效")

    user_id = extract_user_id(decode_token(credentials.credentials))
    if user_id is None:
        raise UnauthorizedError("Token 无效或已过期")

    if claimed_user_id is not None and claimed_user_id != user_id:
        raise UnauthorizedError("用户身份不匹配")

    return user_id

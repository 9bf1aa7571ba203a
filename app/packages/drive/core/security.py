"""安全模块：签发与解析身份令牌（JWT）。

身份提供方只需要给出一个不透明的用户标识，放在令牌的 ``sub`` 字段中；
本服务不维护账号体系，也不校验标识的格式。
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from .config import get_settings
from .logger import logger


def create_access_token(subject: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """根据传入载荷生成带有过期时间的签名 JWT。"""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta if expires_delta else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = subject.copy()
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """解码并校验 JWT（含过期时间），非法或过期时返回 ``None``。"""
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        logger.warning("Failed to decode JWT: %s", exc)
        return None


def extract_user_id(payload: Optional[Dict[str, Any]]) -> Optional[str]:
    """从令牌载荷中取出用户标识（``sub``），缺失或为空时返回 ``None``。"""
    if not payload:
        return None
    user_id = payload.get("sub")
    if user_id is None:
        return None
    user_id = str(user_id).strip()
    return user_id or None

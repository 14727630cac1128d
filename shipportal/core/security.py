# shipportal/core/security.py
""""封装口令哈希/校验（passlib[bcrypt]，10 轮）、口令强度校验与 JWT 生成/解析。

access token 与 refresh token 使用不同的密钥；负载包含 sub/username/email/role/type/exp，
refresh token 额外带 jti，保证同一秒内签发的令牌也互不相同。"""

import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt  # PyJWT
from passlib.context import CryptContext

from shipportal.infra.config import AuthSettings

ALGORITHM = "HS256"
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        # 库里是无法识别的哈希（如手工写入的明文）
        return False


def validate_password_strength(password: str) -> List[str]:
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not re.search(r"[^A-Za-z0-9]", password):
        errors.append("Password must contain at least one special character")
    return errors


def _encode(payload: Dict[str, Any], secret: str, expires: timedelta) -> str:
    to_encode = dict(payload)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires})
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def create_access_token(payload: Dict[str, Any], settings: Optional[AuthSettings] = None) -> str:
    settings = settings or AuthSettings.from_env()
    return _encode(
        {**payload, "type": "access"},
        settings.jwt_secret,
        timedelta(minutes=settings.jwt_expires_minutes),
    )


def create_refresh_token(payload: Dict[str, Any], days: int, settings: Optional[AuthSettings] = None) -> str:
    settings = settings or AuthSettings.from_env()
    return _encode(
        {**payload, "type": "refresh", "jti": str(uuid.uuid4())},
        settings.jwt_refresh_secret,
        timedelta(days=days),
    )


def decode_access_token(token: str, settings: Optional[AuthSettings] = None) -> Dict[str, Any]:
    """解析失败时抛 jwt.PyJWTError，由调用方映射为 401。"""
    settings = settings or AuthSettings.from_env()
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("not an access token")
    return payload


def decode_refresh_token(token: str, settings: Optional[AuthSettings] = None) -> Dict[str, Any]:
    settings = settings or AuthSettings.from_env()
    payload = jwt.decode(token, settings.jwt_refresh_secret, algorithms=[ALGORITHM])
    if payload.get("type") != "refresh":
        raise jwt.InvalidTokenError("not a refresh token")
    return payload

"""
模块职能：
- 口令重置（运维）：按用户名覆盖口令哈希，并强制下次登录修改口令
- 解锁账号：清零失败次数与锁定时间
- 一次性重置令牌：删除旧令牌后签发新令牌（默认 1 小时有效）
- set_password：API 修改/重置口令时共用，写入新哈希并清除强制修改标记

调用方负责 Session 的生命周期；这里只 commit 自己的改动。

日志：cred_reset / cred_reset_not_found / cred_unlock / cred_reset_token_issued
"""
import secrets
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from shipportal.core.models import PasswordResetToken, RefreshToken, utcnow
from shipportal.core.models_user import User
from shipportal.core.security import hash_password
from shipportal.infra.config import get_env
from shipportal.infra.logger import emit

RESET_TOKEN_TTL = timedelta(hours=1)


class CredentialResetConfig(BaseModel):
    target_username: str = "admin"
    new_password: str = "Admin@123"

    @classmethod
    def from_env(cls) -> "CredentialResetConfig":
        return cls(
            target_username=get_env("ADMIN_USERNAME", "admin"),
            new_password=get_env("ADMIN_NEW_PASSWORD", "Admin@123"),
        )


class ResetOutcome(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ResetResult(BaseModel):
    outcome: ResetOutcome
    username: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class UnlockResult(BaseModel):
    found: bool
    username: Optional[str] = None
    failed_login_attempts: int = 0
    locked_until: Optional[datetime] = None
    is_active: bool = False


class IssuedResetToken(BaseModel):
    username: str
    email: str
    is_active: bool
    token: str
    expires_at: datetime


def find_user(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def reset_password(db: Session, config: CredentialResetConfig) -> ResetResult:
    # 先哈希：哈希失败时数据库尚未被触碰
    password_hash = hash_password(config.new_password)

    user = find_user(db, config.target_username)
    if not user:
        emit("cred_reset_not_found", username=config.target_username)
        return ResetResult(outcome=ResetOutcome.NOT_FOUND)

    user.password_hash = password_hash
    user.must_change_password = True
    user.updated_at = utcnow()
    db.commit()

    emit("cred_reset", username=user.username, role=user.role)
    return ResetResult(
        outcome=ResetOutcome.SUCCESS,
        username=user.username,
        email=user.email,
        role=user.role,
    )


def unlock_user(db: Session, username: str) -> UnlockResult:
    user = find_user(db, username)
    if not user:
        return UnlockResult(found=False)

    user.failed_login_attempts = 0
    user.locked_until = None
    db.commit()

    emit("cred_unlock", username=user.username)
    return UnlockResult(
        found=True,
        username=user.username,
        failed_login_attempts=user.failed_login_attempts,
        locked_until=user.locked_until,
        is_active=user.is_active,
    )


def issue_reset_token(db: Session, user: User, ttl: timedelta = RESET_TOKEN_TTL) -> IssuedResetToken:
    db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).delete()

    token = secrets.token_hex(32)
    expires_at = utcnow() + ttl
    db.add(PasswordResetToken(user_id=user.id, token=token, expires_at=expires_at, used=False))
    db.commit()

    emit("cred_reset_token_issued", username=user.username, expires_at=expires_at.isoformat())
    return IssuedResetToken(
        username=user.username,
        email=user.email,
        is_active=user.is_active,
        token=token,
        expires_at=expires_at,
    )


def find_valid_reset_token(db: Session, token: str) -> Optional[PasswordResetToken]:
    return (
        db.query(PasswordResetToken)
        .filter(
            PasswordResetToken.token == token,
            PasswordResetToken.used == False,  # noqa: E712
            PasswordResetToken.expires_at > utcnow(),
        )
        .first()
    )


def set_password(db: Session, user: User, new_password: str) -> None:
    user.password_hash = hash_password(new_password)
    user.must_change_password = False
    user.updated_at = utcnow()
    db.commit()


def revoke_refresh_tokens(db: Session, user_id: str) -> int:
    n = db.query(RefreshToken).filter(RefreshToken.user_id == user_id).delete()
    db.commit()
    return n

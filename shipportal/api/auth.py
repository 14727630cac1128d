# shipportal/api/auth.py
"""
认证路由（主程序以 /api/auth 前缀挂载）

- POST /login            用户名 + 口令登录；失败累计，达到上限后锁定 LOCK_TIME 分钟
- POST /refresh          刷新令牌轮换
- POST /logout           删除刷新令牌（需登录）
- POST /change-password  修改口令；must_change_password 为真时无需当前口令
- POST /reset-password   使用一次性重置令牌设置新口令
- GET  /me               当前用户

日志事件（通过 shipportal.infra.logger.emit 发出）：
- auth_login_attempt：收到登录请求（不记录明文密码）
- auth_login_failed：登录失败（原因：not_found / inactive / locked / bad_password）
- auth_login_success：登录成功（包含 user_id、role）
- auth_account_locked：失败次数达到上限，账号被锁定
"""
from datetime import timedelta
from typing import Optional

import jwt
from fastapi import APIRouter, HTTPException, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from shipportal.api.deps.auth import get_current_user
from shipportal.core.models import RefreshToken, utcnow
from shipportal.core.models_user import User
from shipportal.core.security import (
    create_access_token, create_refresh_token, decode_refresh_token,
    validate_password_strength, verify_password,
)
from shipportal.infra.config import AuthSettings
from shipportal.infra.db import get_db
from shipportal.infra.logger import emit
from shipportal.services.audit import record_audit
from shipportal.services.credentials import (
    find_user, find_valid_reset_token, revoke_refresh_tokens, set_password,
)

router = APIRouter(tags=["auth"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LoginInput(_CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None
    remember_me: bool = Field(default=False, alias="rememberMe")


class RefreshInput(_CamelModel):
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class ChangePasswordInput(_CamelModel):
    current_password: Optional[str] = Field(default=None, alias="currentPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class ResetPasswordInput(_CamelModel):
    token: Optional[str] = None
    new_password: Optional[str] = Field(default=None, alias="newPassword")


def _token_payload(user: User) -> dict:
    return {"sub": user.id, "username": user.username, "email": user.email, "role": user.role}


def _store_refresh_token(db: Session, user: User, days: int, settings: AuthSettings) -> str:
    token = create_refresh_token(_token_payload(user), days, settings)
    db.add(RefreshToken(user_id=user.id, token=token, expires_at=utcnow() + timedelta(days=days)))
    db.commit()
    return token


def _require_strong(password: str) -> None:
    errors = validate_password_strength(password)
    if errors:
        raise HTTPException(status_code=400, detail={"error": "Weak password", "details": errors})


@router.post("/login")
def login(body: LoginInput, request: Request, db: Session = Depends(get_db)):
    settings = AuthSettings.from_env()
    emit(
        "auth_login_attempt",
        username=body.username,
        ip=str(request.client.host) if request.client else None,
    )
    if not body.username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    user = find_user(db, body.username)
    if not user:
        emit("auth_login_failed", username=body.username, reason="not_found")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.is_active:
        emit("auth_login_failed", username=body.username, reason="inactive")
        raise HTTPException(status_code=403, detail="Account is inactive")

    now = utcnow()
    if user.is_locked(now):
        emit("auth_login_failed", username=body.username, reason="locked")
        raise HTTPException(status_code=423, detail="Account is locked. Try again later")
    if user.locked_until is not None:
        # 锁定已过期：重新开始计数
        user.failed_login_attempts = 0
        user.locked_until = None

    if not verify_password(body.password, user.password_hash):
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        if user.failed_login_attempts >= settings.max_login_attempts:
            user.locked_until = now + timedelta(minutes=settings.lock_minutes)
            emit("auth_account_locked", username=user.username, until=user.locked_until.isoformat())
        db.commit()
        emit("auth_login_failed", username=body.username, reason="bad_password")
        record_audit(db, "LOGIN_FAILED", user_id=user.id, request=request,
                     details={"reason": "Invalid password"})
        raise HTTPException(status_code=401, detail="Invalid credentials")

    user.failed_login_attempts = 0
    user.locked_until = None
    user.last_login = now
    db.commit()

    access_token = create_access_token(_token_payload(user), settings)
    days = settings.remember_me_days if body.remember_me else settings.refresh_expires_days
    refresh_token = _store_refresh_token(db, user, days, settings)

    record_audit(db, "LOGIN_SUCCESS", user_id=user.id, request=request)
    emit("auth_login_success", user_id=user.id, username=user.username, role=user.role)

    return {"user": user.public(), "accessToken": access_token, "refreshToken": refresh_token}


@router.post("/refresh")
def refresh(body: RefreshInput, db: Session = Depends(get_db)):
    settings = AuthSettings.from_env()
    if not body.refresh_token:
        raise HTTPException(status_code=400, detail="Refresh token is required")

    try:
        payload = decode_refresh_token(body.refresh_token, settings)
    except jwt.PyJWTError as e:
        emit("auth_refresh_invalid", error=str(e))
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    stored = (
        db.query(RefreshToken)
        .filter(RefreshToken.token == body.refresh_token, RefreshToken.expires_at > utcnow())
        .first()
    )
    if not stored:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user = db.get(User, payload.get("sub") or "")
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    db.delete(stored); db.commit()
    new_refresh = _store_refresh_token(db, user, settings.refresh_expires_days, settings)
    emit("auth_refresh_ok", user_id=user.id)
    return {
        "accessToken": create_access_token(_token_payload(user), settings),
        "refreshToken": new_refresh,
    }


@router.post("/logout")
def logout(body: RefreshInput, request: Request,
           user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if body.refresh_token:
        db.query(RefreshToken).filter(RefreshToken.token == body.refresh_token).delete()
        db.commit()
    record_audit(db, "LOGOUT", user_id=user.id, request=request)
    emit("auth_logout", user_id=user.id)
    return {"message": "Logged out successfully"}


@router.post("/change-password")
def change_password(body: ChangePasswordInput, request: Request,
                    user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not body.new_password:
        raise HTTPException(status_code=400, detail="New password is required")
    _require_strong(body.new_password)

    # 被强制修改口令的账号（例如运维重置之后）无需提供当前口令
    if not user.must_change_password:
        if not body.current_password:
            raise HTTPException(status_code=400, detail="Current password is required")
        if not verify_password(body.current_password, user.password_hash):
            emit("auth_change_password_failed", user_id=user.id)
            raise HTTPException(status_code=401, detail="Current password is incorrect")

    set_password(db, user, body.new_password)
    record_audit(db, "PASSWORD_CHANGED", user_id=user.id, request=request)
    emit("auth_password_changed", user_id=user.id)
    return {"message": "Password changed successfully"}


@router.post("/reset-password")
def reset_password(body: ResetPasswordInput, request: Request, db: Session = Depends(get_db)):
    if not body.token or not body.new_password:
        raise HTTPException(status_code=400, detail="Token and new password are required")
    _require_strong(body.new_password)

    reset_token = find_valid_reset_token(db, body.token)
    if not reset_token:
        emit("auth_reset_token_invalid")
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user = db.get(User, reset_token.user_id)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    reset_token.used = True
    set_password(db, user, body.new_password)
    revoke_refresh_tokens(db, user.id)

    record_audit(db, "PASSWORD_RESET_COMPLETED", user_id=user.id, request=request)
    emit("auth_password_reset", user_id=user.id)
    return {"message": "Password reset successful"}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    data = user.public()
    data["lastLogin"] = user.last_login.isoformat() if user.last_login else None
    return {"user": data}

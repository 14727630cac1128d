# shipportal/api/deps/auth.py
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from shipportal.infra.db import get_db
from shipportal.infra.logger import emit
from shipportal.core.models_user import User
from shipportal.core.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    从 Authorization: Bearer <token> 解析出当前用户，并查库返回 User。
    若无凭证、令牌无效或用户已停用，则 401。
    """
    if not creds or not creds.credentials:
        emit("auth_missing_header")
        raise HTTPException(status_code=401, detail="No token provided")

    try:
        payload = decode_access_token(creds.credentials)
    except jwt.ExpiredSignatureError:
        emit("auth_token_expired")
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    except jwt.PyJWTError as e:
        emit("auth_token_invalid", error=str(e))
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db.query(User).filter(User.id == user_id, User.is_active == True).first()  # noqa: E712
    if not user:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user

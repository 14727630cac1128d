"""
模块职能：
- 写入 audit_logs（登录成功/失败、登出、修改/重置口令）。
- 审计写入失败不影响主流程：回滚本次写入并输出 audit_write_failed。
"""
import json
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shipportal.core.models import AuditLog
from shipportal.infra.logger import emit_error


def record_audit(db: Session, action: str, user_id: Optional[str] = None,
                 request: Optional[Request] = None, entity_type: Optional[str] = None,
                 entity_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
    entry = AuditLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=json.dumps(details) if details else None,
        ip_address=str(request.client.host) if request and request.client else None,
        user_agent=request.headers.get("user-agent") if request else None,
    )
    try:
        db.add(entry); db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        emit_error("audit_write_failed", action=action, user_id=user_id, error=str(e))

""""
模块职能：

ORM 实体，映射到 database/schema.sql 中的表（主键由应用侧生成 UUID 字符串）：

refresh_tokens：登录签发的刷新令牌，登出/重置口令时删除

password_reset_tokens：一次性口令重置令牌（运维脚本或 forgot-password 签发）

audit_logs：安全相关操作的审计记录

shipments / documents：货运单与附件（仅基础列；海关/费用列由迁移 0002 补齐）"""

# shipportal/core/models.py
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text


def _uuid() -> str: return str(uuid.uuid4())


def utcnow() -> datetime:
    # 库里统一存无时区的 UTC 时间
    return datetime.now(timezone.utc).replace(tzinfo=None)


Base = declarative_base()


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    token = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    token = Column(String(255), nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=True)
    action = Column(String(64), nullable=False)
    entity_type = Column(String(64), nullable=True)
    entity_id = Column(String(64), nullable=True)
    details = Column(Text, nullable=True)                          # JSON 文本
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Shipment(Base):
    __tablename__ = "shipments"
    id = Column(String(36), primary_key=True, default=_uuid)
    shipment_id = Column(String(64), unique=True, nullable=False)  # 业务单号
    exporter_name = Column(String(255), nullable=True)
    receiver_name = Column(String(255), nullable=True)
    item_description = Column(Text, nullable=True)
    weight = Column(Numeric(10, 2), nullable=True)
    weight_unit = Column(String(8), nullable=True)
    value = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(8), nullable=True)
    mode_of_transport = Column(String(32), nullable=True)
    status = Column(String(32), nullable=False, default="created")
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    last_updated_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Document(Base):
    __tablename__ = "documents"
    id = Column(String(36), primary_key=True, default=_uuid)
    shipment_id = Column(String(36), ForeignKey("shipments.id", ondelete="CASCADE"), index=True, nullable=False)
    document_type = Column(String(64), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(128), nullable=True)
    uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

# shipportal/core/models_user.py
""""定义 UserRole（admin|accounts|clearance_manager）与 User ORM 实体。

must_change_password：下次登录后必须修改口令（口令重置脚本会置为 true）
failed_login_attempts / locked_until：登录失败锁定（unlock_admin 脚本负责清零）"""
from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String, ForeignKey

from shipportal.core.models import Base, utcnow


class UserRole(str, Enum):
    admin = "admin"
    accounts = "accounts"
    clearance_manager = "clearance_manager"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    # 存字符串而不是 SAEnum：schema.sql 里是 VARCHAR，便于 SQL 脚本直接写入
    role = Column(String(32), nullable=False, default=UserRole.accounts.value)
    full_name = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    must_change_password = Column(Boolean, nullable=False, default=True)
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    def is_locked(self, now=None) -> bool:
        now = now or utcnow()
        return self.locked_until is not None and self.locked_until > now

    def public(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "fullName": self.full_name,
            "isActive": self.is_active,
            "mustChangePassword": self.must_change_password,
        }

# tests/conftest.py
# 测试环境变量要在导入 shipportal 之前设置
import os
os.environ["LOG_TO_FILE"] = "false"   # 测试别落盘，减少噪音
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")

import pytest  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from shipportal.core.models_user import User  # noqa: E402
from shipportal.core.security import hash_password  # noqa: E402
from shipportal.infra.config import DatabaseSettings  # noqa: E402
from shipportal.infra.db import create_db_engine  # noqa: E402


@pytest.fixture()
def db_url(tmp_path, monkeypatch):
    """每个测试一个独立的 SQLite 文件，并清掉可能影响连接的 TLS 变量。"""
    url = f"sqlite:///{tmp_path / 'portal.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.delenv("DATABASE_SSL", raising=False)
    monkeypatch.delenv("DATABASE_CA_CERT", raising=False)
    monkeypatch.delenv("ADMIN_USERNAME", raising=False)
    monkeypatch.delenv("ADMIN_NEW_PASSWORD", raising=False)
    return url


@pytest.fixture()
def engine(db_url):
    eng = create_db_engine(DatabaseSettings(url=db_url))
    yield eng
    eng.dispose()


@pytest.fixture()
def migrated(db_url):
    from scripts.migrate import run as migrate_run
    migrate_run()
    return db_url


def add_user(engine, username: str, password: str, role: str = "admin", **kwargs) -> str:
    with Session(engine) as db:
        u = User(
            username=username,
            email=kwargs.pop("email", f"{username}@shipportal.test"),
            password_hash=hash_password(password),
            role=role,
            must_change_password=kwargs.pop("must_change_password", False),
            **kwargs,
        )
        db.add(u)
        db.commit()
        return u.id


def get_user(engine, username: str) -> User:
    with Session(engine, expire_on_commit=False) as db:
        return db.query(User).filter(User.username == username).first()

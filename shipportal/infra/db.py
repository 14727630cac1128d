# shipportal/infra/db.py
""""模块职能：

根据 DatabaseSettings 创建 SQLAlchemy 引擎（PostgreSQL/CockroachDB 可选 TLS + CA 证书）

database_engine()：脚本用，一次调用一个引擎，退出时（含异常）统一 dispose

init_engine() / get_db()：API 用，进程级引擎 + 每请求一个 Session"""

from contextlib import contextmanager
from typing import Generator, Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from shipportal.infra.config import DatabaseSettings
from shipportal.infra.logger import emit


def _connect_args(settings: DatabaseSettings) -> dict:
    # 先读证书：文件缺失时在创建引擎之前失败
    ca = settings.read_ca_cert()
    if settings.url.startswith("sqlite"):
        return {"check_same_thread": False}
    if ca is not None:
        return {"sslmode": "verify-full", "sslrootcert": settings.ca_cert_path}
    return {}


def create_db_engine(settings: Optional[DatabaseSettings] = None) -> Engine:
    settings = settings or DatabaseSettings.from_env()
    return create_engine(settings.url, connect_args=_connect_args(settings))


@contextmanager
def database_engine(settings: Optional[DatabaseSettings] = None) -> Iterator[Engine]:
    """脚本专用：yield 一个引擎，结束时无论成败都释放连接池。"""
    settings = settings or DatabaseSettings.from_env()
    engine = create_db_engine(settings)
    try:
        yield engine
    finally:
        engine.dispose()
        emit("db_closed", database_url=settings.masked_url())


_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def init_engine(settings: Optional[DatabaseSettings] = None) -> Engine:
    global _engine, _SessionLocal
    dispose_engine()
    _engine = create_db_engine(settings)
    _SessionLocal = sessionmaker(bind=_engine, autoflush=False)
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        return init_engine()
    return _engine


def dispose_engine() -> None:
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def ping() -> None:
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))


def get_db() -> Generator[Session, None, None]:
    """FastAPI 依赖函数：yield 一个 Session，用后自动关闭。"""
    if _SessionLocal is None:
        init_engine()
    db = _SessionLocal()
    try:
        yield db
    finally:
        db.close()

# -*- coding: utf-8 -*-
"""
有序迁移（带账本）
------------------------------------------------
职能：
- 迁移以 @migration(version, name) 注册，按 version 排序执行
- schema_migrations 表记录已执行的版本；已执行的直接跳过
- 每个迁移与它的账本记录在同一事务内：迁移失败 → 整体回滚，不写账本

与整文件迁移（services/migrator.py）的关系：
- 0001 执行 database/schema.sql（语句均带 IF NOT EXISTS，只建缺失的表和索引）
- 0002 补齐 shipments 的海关/费用列
- 0003 为旧版 users 表补齐登录锁定列
两种方式共用同一份 SQL，先跑哪个结果都一致。

日志：migration_skip / migration_applied / migration_failed
"""
from typing import Callable, Dict, List, NamedTuple, Optional, Set

from sqlalchemy import DateTime, bindparam, inspect, text
from sqlalchemy.engine import Connection, Engine

from shipportal.core.errors import MigrationError
from shipportal.core.models import utcnow
from shipportal.infra.logger import emit, emit_error
from shipportal.services.migrator import SCHEMA_PATH, execute_on_connection, read_schema

LEDGER_TABLE = "schema_migrations"

# applied_at 按 DateTime 绑定，由方言负责序列化
_LEDGER_INSERT = text(
    f"INSERT INTO {LEDGER_TABLE} (version, name, applied_at) VALUES (:v, :n, :t)"
).bindparams(bindparam("t", type_=DateTime()))


class Migration(NamedTuple):
    version: str
    name: str
    apply: Callable[[Connection], None]


MIGRATIONS: List[Migration] = []


def migration(version: str, name: str):
    """装饰器：注册一个迁移步骤。版本号重复视为编程错误。"""
    def decorator(func):
        if any(m.version == version for m in MIGRATIONS):
            raise MigrationError(f"duplicate migration version: {version}")
        MIGRATIONS.append(Migration(version, name, func))
        MIGRATIONS.sort(key=lambda m: m.version)
        return func
    return decorator


def _table_has_column(conn: Connection, table: str, column: str) -> bool:
    # inspector 对 SQLite / PostgreSQL 通用
    return column in {c["name"] for c in inspect(conn).get_columns(table)}


def _add_column_if_missing(conn: Connection, table: str, column: str, coltype: str):
    if not _table_has_column(conn, table, column):
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {coltype}"))


@migration("0001", "base tables")
def _base_tables(conn: Connection) -> None:
    execute_on_connection(conn, read_schema(SCHEMA_PATH))


SHIPMENT_CUSTOMS_COLUMNS = [
    ("invoice_no", "VARCHAR(255)"),
    ("invoice_item_count", "INTEGER"),
    ("customs_r_form", "VARCHAR(255)"),
    ("bl_awb_no", "VARCHAR(255)"),
    ("container_no", "VARCHAR(255)"),
    ("container_type", "VARCHAR(255)"),
    ("cbm", "DECIMAL(10, 2)"),
    ("gross_weight", "DECIMAL(10, 2)"),
    ("package_count", "VARCHAR(255)"),
    ("cleared_date", "DATE"),
    ("expense_macl", "DECIMAL(10, 2)"),
    ("expense_mpl", "DECIMAL(10, 2)"),
    ("expense_mcs", "DECIMAL(10, 2)"),
    ("expense_transportation", "DECIMAL(10, 2)"),
    ("expense_liner", "DECIMAL(10, 2)"),
]


@migration("0002", "shipment customs and expense columns")
def _shipment_customs_columns(conn: Connection) -> None:
    for column, coltype in SHIPMENT_CUSTOMS_COLUMNS:
        _add_column_if_missing(conn, "shipments", column, coltype)


@migration("0003", "user login lockout columns")
def _user_lockout_columns(conn: Connection) -> None:
    _add_column_if_missing(conn, "users", "failed_login_attempts", "INTEGER NOT NULL DEFAULT 0")
    _add_column_if_missing(conn, "users", "locked_until", "TIMESTAMP")


def ensure_ledger(engine: Engine) -> None:
    with engine.begin() as conn:
        conn.execute(text(
            f"CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} ("
            " version VARCHAR(32) PRIMARY KEY,"
            " name VARCHAR(255) NOT NULL,"
            " applied_at TIMESTAMP NOT NULL"
            ")"
        ))


def applied_versions(engine: Engine) -> Set[str]:
    with engine.connect() as conn:
        rows = conn.execute(text(f"SELECT version FROM {LEDGER_TABLE}")).fetchall()
    return {r[0] for r in rows}


def pending(engine: Engine, migrations: Optional[List[Migration]] = None) -> List[Migration]:
    done = applied_versions(engine)
    return [m for m in (MIGRATIONS if migrations is None else migrations) if m.version not in done]


def apply_migrations(engine: Engine, migrations: Optional[List[Migration]] = None) -> List[str]:
    """执行所有未执行的迁移，返回本次执行的版本号列表。首个失败即停止并抛出。"""
    migrations = sorted(MIGRATIONS if migrations is None else migrations, key=lambda m: m.version)
    versions = [m.version for m in migrations]
    if len(versions) != len(set(versions)):
        raise MigrationError("duplicate migration versions in registry")

    ensure_ledger(engine)
    done = applied_versions(engine)
    applied: List[str] = []
    for m in migrations:
        if m.version in done:
            emit("migration_skip", version=m.version, name=m.name)
            continue
        try:
            with engine.begin() as conn:
                m.apply(conn)
                conn.execute(_LEDGER_INSERT, {"v": m.version, "n": m.name, "t": utcnow()})
        except Exception as e:
            emit_error("migration_failed", version=m.version, name=m.name, error=str(e))
            raise
        emit("migration_applied", version=m.version, name=m.name)
        applied.append(m.version)
    return applied


def ledger(engine: Engine) -> Dict[str, str]:
    with engine.connect() as conn:
        rows = conn.execute(text(f"SELECT version, name FROM {LEDGER_TABLE} ORDER BY version")).fetchall()
    return {r[0]: r[1] for r in rows}

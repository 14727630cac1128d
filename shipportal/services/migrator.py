"""
模块职能：整文件 SQL 迁移。

- read_schema(path)：读取 SQL 文本（不做任何校验）
- execute_script(raw, dialect, sql)：把整段脚本原样交给驱动执行（可含多条语句）
- execute_on_connection(conn, sql)：同上，但在已开启的事务里执行，提交交给调用方
- run_schema_file(settings, path)：连接 → 读取 → 执行 → 关闭；关闭步骤在任何出口都会执行

不记录版本、不重试；每次运行都会重新执行整个文件，幂等性完全取决于 SQL 自身
（例如 CREATE TABLE IF NOT EXISTS）。有序迁移见 services/migrations.py。

日志：migrate_connected / migrate_schema_read / migrate_executed
"""
from pathlib import Path
from typing import List, Optional

from shipportal.infra.config import DatabaseSettings
from shipportal.infra.db import database_engine
from shipportal.infra.logger import emit

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "database" / "schema.sql"


def read_schema(path: Path = SCHEMA_PATH) -> str:
    return Path(path).read_text(encoding="utf-8")


def execute_script(raw, dialect: str, sql: str) -> None:
    """raw 为 DBAPI 连接（engine.raw_connection()）。"""
    if dialect == "sqlite":
        # sqlite3 的 cursor.execute 只接受单条语句
        raw.driver_connection.executescript(sql)
    else:
        cur = raw.cursor()
        try:
            cur.execute(sql)
        finally:
            cur.close()
    raw.commit()


def split_statements(sql: str) -> List[str]:
    """去掉整行 -- 注释后按分号切分；schema.sql 的语句体内不含分号。"""
    body = "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))
    return [s.strip() for s in body.split(";") if s.strip()]


def execute_on_connection(conn, sql: str) -> None:
    """
    在调用方已开启的事务连接上执行整段脚本，不自行提交（供有序迁移使用）。
    PostgreSQL 整段交给驱动；SQLite 逐条执行。
    """
    if conn.dialect.name == "sqlite":
        for stmt in split_statements(sql):
            conn.exec_driver_sql(stmt)
    else:
        conn.exec_driver_sql(sql)


def run_schema_file(settings: Optional[DatabaseSettings] = None, path: Path = SCHEMA_PATH) -> None:
    settings = settings or DatabaseSettings.from_env()
    with database_engine(settings) as engine:
        print("[migrate] connecting to database ...", flush=True)
        raw = engine.raw_connection()
        try:
            emit("migrate_connected", database_url=settings.masked_url())
            print("[migrate] connected.", flush=True)

            print(f"[migrate] reading schema file {path} ...", flush=True)
            sql = read_schema(path)
            emit("migrate_schema_read", path=str(path), size=len(sql))

            print("[migrate] running migration ...", flush=True)
            execute_script(raw, engine.dialect.name, sql)
            emit("migrate_executed", path=str(path))
            print("[migrate] migration completed successfully.", flush=True)
        finally:
            raw.close()
            print("[migrate] database connection closed.", flush=True)

# scripts/check_db.py
"""
数据库自检：列出所有表、users 行数与前 5 个用户，以及 shipments/documents 的列。
只读，不修改任何数据。

用法：python -m scripts.check_db
退出码：0 成功；1 连接失败
"""
import os
import sys

# 确保脚本在控制台的输出及时刷新
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from typing import Optional  # noqa: E402

from sqlalchemy import inspect, text  # noqa: E402

from shipportal.infra.config import DatabaseSettings, load_env  # noqa: E402
from shipportal.infra.db import database_engine  # noqa: E402
from shipportal.infra.logger import configure_script_logging, emit, emit_error  # noqa: E402


def run(settings: Optional[DatabaseSettings] = None) -> dict:
    settings = settings or DatabaseSettings.from_env()
    report = {"tables": [], "users_count": None, "sample_users": [], "columns": {}}

    with database_engine(settings) as engine:
        print("[check_db] connecting to database ...", flush=True)
        with engine.connect() as conn:
            insp = inspect(conn)
            report["tables"] = sorted(insp.get_table_names())
            print(f"[check_db] found {len(report['tables'])} table(s):", flush=True)
            for name in report["tables"]:
                print(f"  - {name}", flush=True)

            if "users" in report["tables"]:
                report["users_count"] = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
                rows = conn.execute(
                    text("SELECT username, email, role FROM users ORDER BY username LIMIT 5")
                ).mappings().all()
                report["sample_users"] = [dict(r) for r in rows]
                print(f"[check_db] users count: {report['users_count']}", flush=True)
                for u in report["sample_users"]:
                    print(f"    - {u['username']} ({u['email']}) - {u['role']}", flush=True)
            else:
                print("[check_db] users table not found", flush=True)

            for table in ("shipments", "documents"):
                if table not in report["tables"]:
                    continue
                cols = [(c["name"], str(c["type"])) for c in insp.get_columns(table)]
                report["columns"][table] = cols
                print(f"[check_db] {table} columns:", flush=True)
                for name, typ in cols:
                    print(f"  - {name}: {typ}", flush=True)

    emit("check_db_done", tables=len(report["tables"]), users=report["users_count"])
    return report


def main() -> int:
    try:
        run()
        return 0
    except Exception as e:
        emit_error("check_db_error", error=str(e))
        print(f"[check_db] ERROR: {e}", file=sys.stderr, flush=True)
        return 1


if __name__ == "__main__":
    load_env()
    configure_script_logging()
    sys.exit(main())

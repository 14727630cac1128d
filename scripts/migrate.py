# scripts/migrate.py
"""
整文件迁移：读取 shipportal/database/schema.sql 并原样执行。
连接 → 读取 → 执行 → 关闭；关闭步骤在任何出口都会执行。
不记录版本；幂等性取决于 SQL 自身（CREATE TABLE IF NOT EXISTS）。

用法：python -m scripts.migrate
退出码：0 成功；1 任意错误（连接、读取、执行）
"""

import os
import sys

# 确保脚本在控制台的输出及时刷新
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from pathlib import Path  # noqa: E402
from typing import Optional  # noqa: E402

from shipportal.infra.config import DatabaseSettings, load_env  # noqa: E402
from shipportal.infra.logger import configure_script_logging, emit, emit_error  # noqa: E402
from shipportal.services.migrator import SCHEMA_PATH, run_schema_file  # noqa: E402


def run(settings: Optional[DatabaseSettings] = None, path: Path = SCHEMA_PATH) -> None:
    settings = settings or DatabaseSettings.from_env()
    emit("migrate_begin", database_url=settings.masked_url(), schema=str(path))
    run_schema_file(settings, path)
    emit("migrate_done", status="ok")


def main() -> int:
    try:
        run()
        return 0
    except Exception as e:
        emit_error("migrate_error", error=str(e))
        print(f"[migrate] ERROR: migration failed: {e}", file=sys.stderr, flush=True)
        return 1


if __name__ == "__main__":
    load_env()
    configure_script_logging()
    sys.exit(main())

# scripts/apply_migrations.py
"""
有序迁移：按版本号执行 shipportal.services.migrations 中注册、且尚未记录在
schema_migrations 表中的迁移。幂等（多次执行只会跳过已执行的版本）。

用法：python -m scripts.apply_migrations
退出码：0 成功（含无待执行迁移）；1 任一迁移失败（该迁移回滚，不写账本）
"""
import os
import sys

# 确保脚本在控制台的输出及时刷新
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from typing import List, Optional  # noqa: E402

from shipportal.infra.config import DatabaseSettings, load_env  # noqa: E402
from shipportal.infra.db import database_engine  # noqa: E402
from shipportal.infra.logger import configure_script_logging, emit, emit_error  # noqa: E402
from shipportal.services.migrations import apply_migrations, ensure_ledger, pending  # noqa: E402


def run(settings: Optional[DatabaseSettings] = None) -> List[str]:
    settings = settings or DatabaseSettings.from_env()
    emit("apply_migrations_begin", database_url=settings.masked_url())
    with database_engine(settings) as engine:
        ensure_ledger(engine)
        todo = pending(engine)
        print(f"[apply_migrations] {len(todo)} pending migration(s) ...", flush=True)
        applied = apply_migrations(engine)
    emit("apply_migrations_done", applied=applied)
    print(f"[apply_migrations] done, applied: {', '.join(applied) or 'none'}", flush=True)
    return applied


def main() -> int:
    try:
        run()
        return 0
    except Exception as e:
        emit_error("apply_migrations_error", error=str(e))
        print(f"[apply_migrations] ERROR: {e}", file=sys.stderr, flush=True)
        return 1


if __name__ == "__main__":
    load_env()
    configure_script_logging()
    sys.exit(main())

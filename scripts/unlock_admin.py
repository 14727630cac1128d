# scripts/unlock_admin.py
"""
解锁账号：清零 failed_login_attempts、清空 locked_until，并打印账号状态。
目标用户名取 ADMIN_USERNAME（默认 admin）。

用法：python -m scripts.unlock_admin
退出码：0 成功或账号不存在；1 连接/更新失败
"""
import os
import sys

# 确保脚本在控制台的输出及时刷新
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from typing import Optional  # noqa: E402

from sqlalchemy.orm import Session  # noqa: E402

from shipportal.infra.config import DatabaseSettings, get_env, load_env  # noqa: E402
from shipportal.infra.db import database_engine  # noqa: E402
from shipportal.infra.logger import configure_script_logging, emit, emit_error  # noqa: E402
from shipportal.services.credentials import UnlockResult, unlock_user  # noqa: E402


def run(settings: Optional[DatabaseSettings] = None, username: Optional[str] = None) -> UnlockResult:
    settings = settings or DatabaseSettings.from_env()
    username = username or get_env("ADMIN_USERNAME", "admin")
    emit("unlock_begin", database_url=settings.masked_url(), username=username)

    with database_engine(settings) as engine:
        print(f"[unlock_admin] unlocking {username} ...", flush=True)
        with Session(engine) as db:
            result = unlock_user(db, username)

    if result.found:
        print("[unlock_admin] account unlocked.", flush=True)
        print(f"  Username: {result.username}", flush=True)
        print(f"  Failed Attempts: {result.failed_login_attempts}", flush=True)
        print(f"  Locked Until: {result.locked_until or 'Not locked'}", flush=True)
        print(f"  Is Active: {'Yes' if result.is_active else 'No'}", flush=True)
    else:
        print(f"[unlock_admin] user not found: {username}", flush=True)

    emit("unlock_done", found=result.found)
    return result


def main() -> int:
    try:
        run()
        return 0
    except Exception as e:
        emit_error("unlock_error", error=str(e))
        print(f"[unlock_admin] ERROR: {e}", file=sys.stderr, flush=True)
        return 1


if __name__ == "__main__":
    load_env()
    configure_script_logging()
    sys.exit(main())

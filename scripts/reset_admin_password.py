# scripts/reset_admin_password.py
"""
口令重置：把目标账号（默认 admin）的口令覆盖为新口令（默认 Admin@123，bcrypt 哈希存储），
并置 must_change_password = true，要求下次登录后修改。

目标用户名与新口令来自环境变量，不写死在代码里：
- ADMIN_USERNAME（默认 admin）
- ADMIN_NEW_PASSWORD（默认 Admin@123）

用法：python -m scripts.reset_admin_password
退出码：0 成功或账号不存在（只报告，不算错误）；1 连接/哈希/更新失败
"""
import os
import sys

# 确保脚本在控制台的输出及时刷新
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from typing import Optional  # noqa: E402

from sqlalchemy.orm import Session  # noqa: E402

from shipportal.infra.config import DatabaseSettings, load_env  # noqa: E402
from shipportal.infra.db import database_engine  # noqa: E402
from shipportal.infra.logger import configure_script_logging, emit, emit_error  # noqa: E402
from shipportal.services.credentials import (  # noqa: E402
    CredentialResetConfig, ResetOutcome, ResetResult, reset_password,
)


def run(settings: Optional[DatabaseSettings] = None,
        config: Optional[CredentialResetConfig] = None) -> ResetResult:
    settings = settings or DatabaseSettings.from_env()
    config = config or CredentialResetConfig.from_env()
    emit("reset_admin_begin", database_url=settings.masked_url(), username=config.target_username)

    try:
        with database_engine(settings) as engine:
            print("[reset_admin_password] connecting to database ...", flush=True)
            with Session(engine) as db:
                result = reset_password(db, config)
    finally:
        print("[reset_admin_password] database connection closed.", flush=True)

    if result.outcome is ResetOutcome.SUCCESS:
        print("[reset_admin_password] password reset successfully.", flush=True)
        print(f"  Username: {result.username}", flush=True)
        print(f"  Email: {result.email}", flush=True)
        print(f"  Role: {result.role}", flush=True)
        print("  The account must change its password at next login.", flush=True)
    else:
        print(f"[reset_admin_password] user not found: {config.target_username}", flush=True)

    emit("reset_admin_done", outcome=result.outcome.value)
    return result


def main() -> int:
    try:
        run()
        return 0
    except Exception as e:
        emit_error("reset_admin_error", outcome=ResetOutcome.ERROR.value, error=str(e))
        print(f"[reset_admin_password] ERROR: {e}", file=sys.stderr, flush=True)
        return 1


if __name__ == "__main__":
    load_env()
    configure_script_logging()
    sys.exit(main())

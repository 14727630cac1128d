# scripts/generate_reset_token.py
"""
为指定用户签发一次性口令重置令牌（1 小时有效），旧令牌先删除。
令牌打印在控制台，由管理员转交用户，在前端 /forgot-password 页面使用。

用法：python -m scripts.generate_reset_token <username>
退出码：0 成功；1 参数缺失、用户不存在或数据库错误
"""
import os
import sys
import argparse

# 确保脚本在控制台的输出及时刷新
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from typing import List, Optional  # noqa: E402

from sqlalchemy.orm import Session  # noqa: E402

from shipportal.core.errors import ConfigError  # noqa: E402
from shipportal.infra.config import DatabaseSettings, load_env  # noqa: E402
from shipportal.infra.db import database_engine  # noqa: E402
from shipportal.infra.logger import configure_script_logging, emit, emit_error  # noqa: E402
from shipportal.services.credentials import IssuedResetToken, find_user, issue_reset_token  # noqa: E402


class UserNotFound(LookupError):
    pass


def run(username: str, settings: Optional[DatabaseSettings] = None) -> IssuedResetToken:
    settings = settings or DatabaseSettings.from_env()
    emit("reset_token_begin", database_url=settings.masked_url(), username=username)

    with database_engine(settings) as engine:
        print(f"[generate_reset_token] looking up user: {username}", flush=True)
        with Session(engine) as db:
            user = find_user(db, username)
            if not user:
                raise UserNotFound(f"user not found: {username}")
            if not user.is_active:
                emit("reset_token_user_inactive", level="WARNING", username=username)
                print("[generate_reset_token] warning: this user account is inactive", flush=True)
            issued = issue_reset_token(db, user)

    print("=" * 80, flush=True)
    print("PASSWORD RESET TOKEN", flush=True)
    print("=" * 80, flush=True)
    print(f"Username: {issued.username}", flush=True)
    print(f"Email: {issued.email}", flush=True)
    print(f"Token: {issued.token}", flush=True)
    print(f"Expires At: {issued.expires_at.isoformat()}Z", flush=True)
    print("=" * 80, flush=True)
    emit("reset_token_done", username=issued.username)
    return issued


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="python -m scripts.generate_reset_token")
    parser.add_argument("username", nargs="?", help="账号用户名")
    args = parser.parse_args(argv)
    if not args.username:
        parser.print_usage()
        raise ConfigError("username is required")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    try:
        args = _parse_args(argv)
        run(args.username)
        return 0
    except Exception as e:
        emit_error("reset_token_error", error=str(e))
        print(f"[generate_reset_token] ERROR: {e}", file=sys.stderr, flush=True)
        return 1


if __name__ == "__main__":
    load_env()
    configure_script_logging()
    sys.exit(main())

# scripts/seed_admin.py
"""
种子脚本：若管理员账号不存在则创建（口令 bcrypt 哈希存储，must_change_password = true）。
账号已存在时不做任何修改（改口令请用 reset_admin_password）。

- ADMIN_USERNAME（默认 admin）
- ADMIN_EMAIL（默认 admin@shipportal.local）
- ADMIN_NEW_PASSWORD（默认 Admin@123）

可作为脚本执行，也可被测试直接导入调用（提供 run() 函数）
"""
import os
import sys

# 确保脚本在控制台的输出及时刷新
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from typing import Optional  # noqa: E402

from sqlalchemy.orm import Session  # noqa: E402

from shipportal.core.models_user import User, UserRole  # noqa: E402
from shipportal.core.security import hash_password  # noqa: E402
from shipportal.infra.config import DatabaseSettings, get_env, load_env  # noqa: E402
from shipportal.infra.db import database_engine  # noqa: E402
from shipportal.infra.logger import configure_script_logging, emit, emit_error  # noqa: E402
from shipportal.services.credentials import CredentialResetConfig, find_user  # noqa: E402


def run(settings: Optional[DatabaseSettings] = None) -> str:
    """返回 created / exists。"""
    settings = settings or DatabaseSettings.from_env()
    config = CredentialResetConfig.from_env()
    email = get_env("ADMIN_EMAIL", "admin@shipportal.local")
    emit("seed_begin", database_url=settings.masked_url(), username=config.target_username)

    with database_engine(settings) as engine:
        with Session(engine) as db:
            if find_user(db, config.target_username):
                action = "exists"
            else:
                action = "created"
                db.add(User(
                    username=config.target_username,
                    email=email,
                    password_hash=hash_password(config.new_password),
                    role=UserRole.admin.value,
                    is_active=True,
                    must_change_password=True,
                ))
                db.commit()

    emit("seed_user", username=config.target_username, role=UserRole.admin.value, action=action)
    print(f"[seed_admin] {action} user: {config.target_username} ({UserRole.admin.value})", flush=True)
    return action


if __name__ == "__main__":
    load_env()
    configure_script_logging()
    try:
        run()
        sys.exit(0)
    except Exception as e:
        emit_error("seed_error", error=str(e))
        print(f"[seed_admin] ERROR: {e}", file=sys.stderr, flush=True)
        sys.exit(1)

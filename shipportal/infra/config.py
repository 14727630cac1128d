# shipportal/infra/config.py
"""
模块职能：环境配置加载与数据库连接参数。

- load_env()：先加载 .env.example 作为默认值，再用 .env 覆盖（与应用入口保持一致）
- DatabaseSettings：DATABASE_URL / DATABASE_SSL / DATABASE_CA_CERT
  TLS 开启时，CA 证书文件在建立连接之前就被读取；文件不存在即刻失败，不会发出任何查询。
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from shipportal.core.errors import ConfigError

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DATABASE_URL = "sqlite:///./shipportal.db"


def load_env(root: Path = ROOT) -> None:
    env_example = root / ".env.example"
    env_file = root / ".env"
    if env_example.exists():
        load_dotenv(env_example, override=False)
    if env_file.exists():
        load_dotenv(env_file, override=True)


def get_env(k: str, default: str) -> str:
    v = os.getenv(k)
    return v if v is not None and v != "" else default


def get_int(k: str, default: int) -> int:
    try:
        return int(os.getenv(k, str(default)))
    except ValueError:
        return default


class DatabaseSettings(BaseModel):
    url: str = DEFAULT_DATABASE_URL
    ssl: bool = False
    ca_cert_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        return cls(
            url=get_env("DATABASE_URL", DEFAULT_DATABASE_URL),
            ssl=os.getenv("DATABASE_SSL", "false").lower() == "true",
            ca_cert_path=os.getenv("DATABASE_CA_CERT") or None,
        )

    def read_ca_cert(self) -> Optional[str]:
        """TLS 关闭时返回 None；开启时读取并返回 CA 证书内容。"""
        if not self.ssl:
            return None
        if not self.ca_cert_path:
            raise ConfigError("DATABASE_SSL=true requires DATABASE_CA_CERT")
        # 文件缺失时抛 FileNotFoundError，交给调用方统一处理
        return Path(self.ca_cert_path).read_text(encoding="utf-8")

    def masked_url(self) -> str:
        # 日志里不输出口令
        if "@" not in self.url or "://" not in self.url:
            return self.url
        scheme, rest = self.url.split("://", 1)
        creds, host = rest.rsplit("@", 1)
        user = creds.split(":", 1)[0]
        return f"{scheme}://{user}:***@{host}"


class AuthSettings(BaseModel):
    jwt_secret: str
    jwt_refresh_secret: str
    jwt_expires_minutes: int = 15
    refresh_expires_days: int = 7
    remember_me_days: int = 30
    max_login_attempts: int = 5
    lock_minutes: int = 15

    @classmethod
    def from_env(cls) -> "AuthSettings":
        return cls(
            jwt_secret=get_env("JWT_SECRET", "default-secret-change-in-production"),
            jwt_refresh_secret=get_env("JWT_REFRESH_SECRET", "default-refresh-secret"),
            jwt_expires_minutes=get_int("JWT_EXPIRES_MINUTES", 15),
            max_login_attempts=get_int("MAX_LOGIN_ATTEMPTS", 5),
            lock_minutes=get_int("LOCK_TIME", 15),
        )

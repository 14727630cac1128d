"""
结构化日志：每个事件一行 JSON，挂在 "shipportal" logger 下。

- LogSettings.from_env()：在调用时读取 LOG_*，因此 load_env() 与导入顺序无关
- configure_logging(settings)：API 进程使用；控制台 + 可选按天轮转的文件
- configure_script_logging()：运维脚本使用；只输出到控制台
- emit(event, level=..., **kwargs) / emit_error(event, **kwargs)
"""
import json
import logging
import pathlib
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

from pydantic import BaseModel

from shipportal.infra.config import get_env, get_int

_app_logger = logging.getLogger("shipportal")
_configured = False


class LogSettings(BaseModel):
    level: str = "INFO"
    to_file: bool = True
    dir: str = "logs"
    file: str = "shipportal.log"
    rotate_when: str = "midnight"
    backup_count: int = 7

    @classmethod
    def from_env(cls) -> "LogSettings":
        return cls(
            level=get_env("LOG_LEVEL", "INFO").upper(),
            to_file=get_env("LOG_TO_FILE", "true").lower() == "true",
            dir=get_env("LOG_DIR", "logs"),
            file=get_env("LOG_FILE", "shipportal.log"),
            rotate_when=get_env("LOG_ROTATE_WHEN", "midnight"),
            backup_count=get_int("LOG_BACKUP_COUNT", 7),
        )


def configure_logging(settings: Optional[LogSettings] = None) -> LogSettings:
    """只生效一次；返回实际使用的配置，便于入口打印 logger_config。"""
    global _configured
    settings = settings or LogSettings.from_env()
    if _configured:
        return settings

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    root.addHandler(console)

    if settings.to_file:
        pathlib.Path(settings.dir).mkdir(parents=True, exist_ok=True)
        fileh = TimedRotatingFileHandler(
            pathlib.Path(settings.dir) / settings.file,
            when=settings.rotate_when, backupCount=settings.backup_count, encoding="utf-8",
        )
        # 文件里只有 JSON 本身
        fileh.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(fileh)

    root.setLevel(getattr(logging, settings.level, logging.INFO))

    # uvicorn 日志走同一套 handler
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers = []
        lg.propagate = True
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _configured = True
    return settings


def configure_script_logging() -> LogSettings:
    return configure_logging(LogSettings.from_env().model_copy(update={"to_file": False}))


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat(timespec="milliseconds")


def emit(event: str, level: str = "INFO", **kwargs) -> None:
    """
    按 level 记录一条事件，例如：
        emit("migrate_begin", database_url=..., schema="database/schema.sql")
        emit("reset_token_user_inactive", level="WARNING", username="ops")
    """
    level = level.upper()
    rec = {"ts": _now_iso(), "level": level, "event": event, **kwargs}
    levelno = getattr(logging, level, logging.INFO)
    try:
        _app_logger.log(levelno, json.dumps(rec, ensure_ascii=False, default=str))
    except (TypeError, ValueError):
        _app_logger.log(levelno, str(rec))


def emit_error(event: str, **kwargs) -> None:
    emit(event, level="ERROR", **kwargs)

"""
应用入口：
- 加载 .env（先 .env.example 作默认，再用 .env 覆盖）
- lifespan 启动阶段：配置日志 → 打印 logger_config → 建立数据库引擎并探活；关闭时释放连接池
- 装载请求日志中间件、CORS、/api/auth 路由
- 提供 /health

运行：uvicorn shipportal.main:app --port 5000
"""
from shipportal.infra.config import load_env

# 1) 先加载 .env
load_env()

# 2) 正常导入
import os  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from shipportal.middleware.logging import RequestLoggingMiddleware  # noqa: E402
from shipportal.infra.logger import configure_logging, emit  # noqa: E402
from shipportal.infra.db import init_engine, dispose_engine, ping  # noqa: E402
from shipportal.core.models import utcnow  # noqa: E402
from shipportal.api import auth as auth_api  # noqa: E402

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    log_settings = configure_logging()
    emit(
        "logger_config",
        log_level=log_settings.level, to_file=log_settings.to_file, dir=log_settings.dir,
        file=log_settings.file, when=log_settings.rotate_when, backup=log_settings.backup_count,
    )
    init_engine()
    ping()
    emit("db_connected")
    yield
    # shutdown
    dispose_engine()
    emit("app_shutdown")


app = FastAPI(title="Shipment Portal API", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": utcnow().isoformat()}


app.include_router(auth_api.router, prefix="/api/auth", tags=["auth"])

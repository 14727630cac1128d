"""
模块职责：请求级调试日志中间件。
- 为每个请求生成 request_id（响应头 x-request-id 带回）；
- 记录 request_start 与 request_end（含耗时、状态码）；
- 捕获异常并输出 request_error，随后抛出让 FastAPI 处理。
"""
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from shipportal.infra.logger import emit, emit_error

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = str(uuid.uuid4())
        start = time.perf_counter()
        path = str(request.url.path)
        emit("request_start", request_id=rid, method=request.method, path=path)
        try:
            response: Response = await call_next(request)
        except Exception as e:
            dur_ms = round((time.perf_counter() - start) * 1000, 2)
            emit_error(
                "request_error",
                request_id=rid,
                method=request.method,
                path=path,
                error=repr(e),
                duration_ms=dur_ms,
            )
            raise
        dur_ms = round((time.perf_counter() - start) * 1000, 2)
        emit(
            "request_end",
            request_id=rid,
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=dur_ms,
        )
        response.headers["x-request-id"] = rid
        return response

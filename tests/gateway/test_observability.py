"""健康检查与请求日志测试

测试内容：
1. /health 永远 200，/ready 探测后端
2. 每个响应带 X-Request-ID（ULID）
3. 任务路由绑定 task_id 到日志上下文
4. 访问日志带耗时与 owner，日志级别来自 BackendConfig
"""

import logging

import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from structlog.testing import capture_logs
from tasklog.core.config import BackendConfig
from tasklog.gateway.middleware.logging_config import setup_logging
from tasklog.gateway.middleware.logging_mw import LoggingMiddleware
from tasklog.gateway.middleware.trace_mw import TraceMiddleware


class TestHealth:
    async def test_health(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_ready_sqlite(self, client: AsyncClient):
        resp = await client.get("/ready")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ready"
        assert body["checks"]["sqlite"] == "ok"

    async def test_ready_remote_unreachable(self, remote_client: AsyncClient, fake_postgrest):
        fake_postgrest.fail_next = 502

        resp = await remote_client.get("/ready")

        assert resp.status_code == 503
        assert resp.json()["status"] == "not_ready"
        assert resp.json()["checks"]["remote"].startswith("error")


class TestRequestLogging:
    async def test_request_id_header(self, client: AsyncClient):
        first = await client.get("/health")
        second = await client.get("/health")

        assert len(first.headers["X-Request-ID"]) == 26
        assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]

    async def test_task_id_bound_to_log_context(self):
        app = FastAPI()
        app.add_middleware(TraceMiddleware)
        app.add_middleware(LoggingMiddleware)

        @app.post("/api/tasks/{task_id}/start")
        async def _start(task_id: str):
            return structlog.contextvars.get_contextvars()

        @app.get("/api/tasks/summary")
        async def _summary():
            return structlog.contextvars.get_contextvars()

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            bound = (await c.post("/api/tasks/01JTRACE/start")).json()
            summary_ctx = (await c.get("/api/tasks/summary")).json()

        assert bound["task_id"] == "01JTRACE"
        assert bound["method"] == "POST"
        assert len(bound["request_id"]) == 26
        assert "task_id" not in summary_ctx

    async def test_request_completed_has_duration_and_owner(self, client: AsyncClient):
        with capture_logs() as logs:
            await client.get("/api/tasks", headers={"X-User-Id": "log-owner"})

        completed = [e for e in logs if e["event"] == "request_completed"]
        assert len(completed) == 1
        assert completed[0]["status_code"] == 200
        assert completed[0]["owner_id"] == "log-owner"
        assert completed[0]["duration_ms"] >= 0

    async def test_health_checks_log_at_debug(self, client: AsyncClient):
        with capture_logs() as logs:
            await client.get("/health")

        completed = [e for e in logs if e["event"] == "request_completed"]
        assert completed[0]["log_level"] == "debug"
        assert completed[0]["owner_id"] is None


class TestLoggingSetup:
    def test_level_comes_from_config(self):
        setup_logging(BackendConfig(db_path="unused.db", log_level="WARNING"))
        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING

        setup_logging(BackendConfig(db_path="unused.db", log_level="DEBUG", log_format="json"))
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

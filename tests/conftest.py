"""全局 pytest 配置 -- 可控时钟 + 临时 SQLite 后端 + 内存版 PostgREST 后端"""

import json
import re
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from tasklog.core.aggregator import TimeAggregator
from tasklog.core.ledger import SessionLedger
from tasklog.core.store import Backend, open_remote_backend, open_sqlite_backend
from tasklog.core.task_service import TaskService

# 2026-03-02 是周一
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

REMOTE_URL = "http://remote.test"
REMOTE_KEY = "service-role-key"


class ManualClock:
    """手动推进的时钟"""

    def __init__(self, start: datetime = T0) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, **kwargs) -> datetime:
        self._now += timedelta(**kwargs)
        return self._now


_OR_TERM = re.compile(r'([a-z_]+)\.(eq|lt|gt|gte|lte|is)\.("[^"]*"|[^,]*)')


class FakePostgrest:
    """最小可用的 PostgREST 内存实现（httpx.MockTransport handler）

    支持 eq / lt / gt / gte / lte / is.null 过滤、or=(...) 表达式、order、limit、
    HEAD + Prefer: count=exact 计数，
    以及 work_sessions(owner_id) WHERE end_at IS NULL 的唯一约束（409）。
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {"tasks": [], "work_sessions": []}
        # token -> user id
        self.users: dict[str, str] = {}
        # 下一次 /rest 请求强制返回的状态码
        self.fail_next: int | None = None
        self.requests: list[httpx.Request] = []
        # 模拟服务端 max-rows 截断 GET 结果
        self.max_rows: int | None = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/auth/v1/user":
            token = request.headers.get("authorization", "").removeprefix("Bearer ")
            user_id = self.users.get(token)
            if user_id is None:
                return httpx.Response(401, json={"message": "invalid token"})
            return httpx.Response(200, json={"id": user_id})

        if self.fail_next is not None:
            status, self.fail_next = self.fail_next, None
            return httpx.Response(status, json={"message": "forced failure"})

        table = path.removeprefix("/rest/v1/")
        if table not in self.tables:
            return httpx.Response(404, json={"message": f"unknown table {table}"})

        rows = self.tables[table]
        items = request.url.params.multi_items()
        matched = [row for row in rows if self._matches(row, items)]

        if request.method == "GET":
            shaped = self._shape(matched, items)
            if self.max_rows is not None:
                shaped = shaped[: self.max_rows]
            return httpx.Response(200, json=shaped)

        if request.method == "HEAD":
            if "count=exact" not in request.headers.get("prefer", ""):
                return httpx.Response(200)
            total = len(matched)
            shown = f"0-{total - 1}" if total else "*"
            return httpx.Response(200, headers={"Content-Range": f"{shown}/{total}"})

        if request.method == "POST":
            row = json.loads(request.content)
            if table == "work_sessions" and row.get("end_at") is None:
                if any(
                    r["owner_id"] == row["owner_id"] and r["end_at"] is None for r in rows
                ):
                    return httpx.Response(409, json={"code": "23505"})
            rows.append(row)
            return httpx.Response(201, json=[row])

        if request.method == "PATCH":
            changes = json.loads(request.content)
            for row in matched:
                row.update(changes)
            return httpx.Response(200, json=matched)

        if request.method == "DELETE":
            self.tables[table] = [row for row in rows if row not in matched]
            return httpx.Response(200, json=matched)

        return httpx.Response(405)

    def _matches(self, row: dict, items: list[tuple[str, str]]) -> bool:
        for key, expr in items:
            if key in ("select", "order", "limit"):
                continue
            if key == "or":
                terms = _OR_TERM.findall(expr.strip("()"))
                if not any(self._compare(row.get(col), op, val) for col, op, val in terms):
                    return False
                continue
            op, _, value = expr.partition(".")
            if not self._compare(row.get(key), op, value):
                return False
        return True

    @staticmethod
    def _compare(current, op: str, value: str) -> bool:
        value = value.strip('"')
        if op == "is":
            return current is None if value == "null" else False
        if current is None:
            return False
        if op == "eq":
            return str(current) == value
        if op == "lt":
            return current < value
        if op == "lte":
            return current <= value
        if op == "gt":
            return current > value
        if op == "gte":
            return current >= value
        raise AssertionError(f"unsupported operator {op}")

    @staticmethod
    def _shape(rows: list[dict], items: list[tuple[str, str]]) -> list[dict]:
        params = dict(items)
        result = list(rows)
        if "order" in params:
            for term in reversed(params["order"].split(",")):
                column, _, direction = term.partition(".")
                result.sort(key=lambda r: r[column], reverse=direction == "desc")
        if "limit" in params:
            result = result[: int(params["limit"])]
        return [dict(row) for row in result]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fake_postgrest() -> FakePostgrest:
    return FakePostgrest()


@pytest_asyncio.fixture
async def sqlite_backend(tmp_path: Path) -> AsyncGenerator[Backend, None]:
    """已初始化的临时 SQLite 后端"""
    backend = await open_sqlite_backend(str(tmp_path / "sqlite" / "tasklog.db"))
    yield backend
    await backend.close()


@pytest_asyncio.fixture
async def remote_backend(fake_postgrest: FakePostgrest) -> AsyncGenerator[Backend, None]:
    """连接内存 PostgREST 的远程后端"""
    backend = open_remote_backend(
        REMOTE_URL, REMOTE_KEY, transport=fake_postgrest.transport()
    )
    yield backend
    await backend.close()


@pytest.fixture(params=["sqlite", "remote"])
def backend(request) -> Backend:
    """两种后端各跑一遍"""
    return request.getfixturevalue(f"{request.param}_backend")


@pytest.fixture
def ledger(backend: Backend, clock: ManualClock) -> SessionLedger:
    return SessionLedger(backend, clock)


@pytest.fixture
def task_service(backend: Backend, ledger: SessionLedger, clock: ManualClock) -> TaskService:
    return TaskService(backend, ledger, clock)


@pytest.fixture
def aggregator(backend: Backend, clock: ManualClock) -> TimeAggregator:
    return TimeAggregator(backend, clock)

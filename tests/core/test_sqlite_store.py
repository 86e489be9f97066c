"""SQLite 存储层单元测试

测试内容：
1. WAL 模式与表结构初始化
2. 部分唯一索引：每个 owner 至多一个 open 会话
3. 会话切换事务回滚
4. 区间查询的边界语义
"""

from datetime import UTC, datetime, timedelta

import aiosqlite
import pytest
from tasklog.core.exceptions import OpenSessionConflictError
from tasklog.core.models import Task, TaskStatus, WorkSession
from tasklog.core.store.sqlite_init import verify_wal_mode

OWNER = "owner-a"
T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _session(session_id: str, start: datetime, end: datetime | None = None) -> WorkSession:
    return WorkSession(
        id=session_id, task_id="01JTASK0000000000000000001", owner_id=OWNER,
        start_at=start, end_at=end,
    )


class TestInit:
    async def test_wal_mode_enabled(self, sqlite_backend):
        assert await verify_wal_mode(sqlite_backend.conn) is True

    async def test_tables_and_indexes_created(self, sqlite_backend):
        cursor = await sqlite_backend.conn.execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'index')"
        )
        names = {row[0] for row in await cursor.fetchall()}
        assert {"tasks", "work_sessions", "idx_ws_owner_open", "idx_ws_owner_start_at"} <= names

    async def test_ping(self, sqlite_backend):
        await sqlite_backend.ping()


class TestOpenSessionIndex:
    async def test_second_open_session_rejected(self, sqlite_backend):
        store = sqlite_backend.session_store
        await store.insert_session(_session("01JS1", T0))
        await sqlite_backend.conn.commit()

        with pytest.raises(aiosqlite.IntegrityError):
            await store.insert_session(_session("01JS2", T0 + timedelta(minutes=1)))
        await sqlite_backend.conn.rollback()

    async def test_closed_sessions_do_not_conflict(self, sqlite_backend):
        store = sqlite_backend.session_store
        await store.insert_session(_session("01JS1", T0, T0 + timedelta(minutes=1)))
        await store.insert_session(_session("01JS2", T0, T0 + timedelta(minutes=2)))
        await store.insert_session(_session("01JS3", T0 + timedelta(minutes=2)))
        await sqlite_backend.conn.commit()

        open_session = await store.get_open_session(OWNER)
        assert open_session is not None and open_session.id == "01JS3"

    async def test_conflict_maps_to_open_session_error_and_rolls_back(
        self, sqlite_backend, monkeypatch
    ):
        store = sqlite_backend.session_store
        await store.switch_session(_session("01JS1", T0), T0)

        # 模拟另一个写入者：关闭步骤没有看到已存在的 open 会话
        async def _blind_end(owner_id, now, task_id=None):
            return None

        monkeypatch.setattr(store, "end_open_session", _blind_end)
        with pytest.raises(OpenSessionConflictError):
            await store.switch_session(_session("01JS2", T0 + timedelta(minutes=1)), T0)
        monkeypatch.undo()

        open_session = await store.get_open_session(OWNER)
        assert open_session.id == "01JS1"
        sessions = await store.list_sessions_for_task(OWNER, "01JTASK0000000000000000001")
        assert [s.id for s in sessions] == ["01JS1"]

    async def test_switch_closes_and_opens_atomically(self, sqlite_backend):
        store = sqlite_backend.session_store
        await store.switch_session(_session("01JS1", T0), T0)
        later = T0 + timedelta(minutes=7)

        closed = await store.switch_session(_session("01JS2", later), later)

        assert closed.id == "01JS1"
        assert closed.end_at == later
        assert (await store.get_open_session(OWNER)).id == "01JS2"

    async def test_close_for_other_task_is_noop(self, sqlite_backend):
        store = sqlite_backend.session_store
        await store.switch_session(_session("01JS1", T0), T0)

        closed = await store.close_open_session(OWNER, T0, task_id="01JOTHER")

        assert closed is None
        assert (await store.get_open_session(OWNER)).id == "01JS1"


class TestRangeQuery:
    async def test_boundaries_are_half_open(self, sqlite_backend):
        store = sqlite_backend.session_store
        lower, upper = T0, T0 + timedelta(hours=1)
        for sid, start, end in [
            ("01JA", lower - timedelta(hours=1), lower),  # 恰好在 from 结束
            ("01JB", upper, upper + timedelta(minutes=5)),  # 恰好在 to 开始
            ("01JC", lower - timedelta(minutes=5), lower + timedelta(minutes=5)),
            ("01JD", lower + timedelta(minutes=30), None),  # 进行中
        ]:
            await store.insert_session(_session(sid, start, end))
        await sqlite_backend.conn.commit()

        sessions = await store.list_sessions_in_range(OWNER, lower, upper)

        assert [s.id for s in sessions] == ["01JC", "01JD"]

    async def test_other_owner_excluded(self, sqlite_backend):
        store = sqlite_backend.session_store
        other = _session("01JX", T0).model_copy(update={"owner_id": "owner-b"})
        await store.insert_session(other)
        await sqlite_backend.conn.commit()

        assert await store.list_sessions_in_range(OWNER, T0, T0 + timedelta(hours=1)) == []


class TestTaskStore:
    async def test_count_completed_window(self, sqlite_backend):
        store = sqlite_backend.task_store
        for index, (status, updated) in enumerate(
            [
                (TaskStatus.DONE, T0 - timedelta(seconds=1)),
                (TaskStatus.DONE, T0),
                (TaskStatus.DONE, T0 + timedelta(minutes=59)),
                (TaskStatus.DONE, T0 + timedelta(hours=1)),
                (TaskStatus.TODO, T0 + timedelta(minutes=5)),
            ]
        ):
            await store.insert_task(
                Task(
                    id=f"01JT{index}", owner_id=OWNER, title=f"t{index}", status=status,
                    created_at=T0 - timedelta(days=1), updated_at=updated,
                )
            )

        assert await store.count_completed(OWNER, T0, T0 + timedelta(hours=1)) == 2

    async def test_update_missing_task_returns_false(self, sqlite_backend):
        task = Task(id="01JNOPE", owner_id=OWNER, title="x", created_at=T0, updated_at=T0)
        assert await sqlite_backend.task_store.update_task(task) is False

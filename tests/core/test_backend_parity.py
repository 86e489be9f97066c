"""后端一致性测试

同一脚本分别在 SQLite 与远程后端上执行，列表顺序与汇总结果必须一致。
"""

from datetime import UTC, datetime, timedelta

from tasklog.core.aggregator import TimeAggregator
from tasklog.core.clock import Clock
from tasklog.core.ledger import SessionLedger
from tasklog.core.models import TaskCreate, TaskPatch
from tasklog.core.task_service import TaskService

OWNER = "owner-a"
START = datetime(2026, 3, 2, 8, 0, tzinfo=UTC)


class _Clock:
    def __init__(self) -> None:
        self.value = START

    def now(self) -> datetime:
        return self.value


async def _run_script(backend, clock: Clock):
    ledger = SessionLedger(backend, clock)
    tasks = TaskService(backend, ledger, clock)
    aggregator = TimeAggregator(backend, clock)

    def at(**kwargs) -> None:
        clock.value = START + timedelta(**kwargs)

    ids = {}
    for title, due in [
        ("报告", "2026-03-05T12:00:00Z"),
        ("邮件", None),
        ("评审", "2026-03-03T12:00:00Z"),
        ("整理", None),
        ("取消项", "2026-03-01T00:00:00Z"),
    ]:
        at(seconds=len(ids))
        ids[title] = (await tasks.create_task(OWNER, TaskCreate(title=title, due=due))).id

    at(minutes=10)
    await ledger.start_work(OWNER, ids["报告"])
    at(minutes=55, milliseconds=400)
    await ledger.start_work(OWNER, ids["评审"])
    at(hours=15, minutes=30)
    await ledger.stop_work(OWNER)
    at(hours=16, minutes=45)
    await ledger.start_work(OWNER, ids["邮件"])
    at(hours=17, minutes=20, milliseconds=900)
    await tasks.complete_task(OWNER, ids["邮件"])
    at(hours=18)
    await tasks.update_task(OWNER, ids["取消项"], TaskPatch(status="canceled"))
    at(days=1, hours=1)
    await ledger.start_work(OWNER, ids["整理"])
    at(days=1, hours=2, seconds=30)

    listed = [t.title for t in await aggregator.list_with_meta(OWNER)]
    _, summary = await aggregator.get_range_summary(OWNER, "week")
    titles = {task_id: title for title, task_id in ids.items()}
    payload = summary.model_dump(mode="json", by_alias=True)
    for entry in payload["byTask"]:
        entry["id"] = titles[entry["id"]]
    return listed, payload


class TestBackendParity:
    async def test_same_script_same_results(self, sqlite_backend, remote_backend):
        sqlite_result = await _run_script(sqlite_backend, _Clock())
        remote_result = await _run_script(remote_backend, _Clock())

        assert sqlite_result == remote_result

        listed, summary = sqlite_result
        assert listed == ["评审", "报告", "整理", "邮件", "取消项"]
        assert summary["totalSeconds"] == sum(d["seconds"] for d in summary["days"])
        assert summary["completedCount"] == 1

    async def test_empty_window_with_open_session(self, sqlite_backend, remote_backend):
        results = []
        for backend in (sqlite_backend, remote_backend):
            clock = _Clock()
            tasks = TaskService(backend, SessionLedger(backend, clock), clock)
            task = await tasks.create_task(OWNER, TaskCreate(title="进行中"))
            await SessionLedger(backend, clock).start_work(OWNER, task.id)
            clock.value = START + timedelta(hours=2)

            point = START + timedelta(hours=1)
            summary = await TimeAggregator(backend, clock).get_summary(OWNER, point, point)
            results.append((summary.total_seconds, summary.by_task, summary.days))

        assert results[0] == results[1]
        assert results[0][0] == 0
        assert results[0][1] == []

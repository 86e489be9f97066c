"""TimeAggregator -- 任务累计时长与时间范围汇总

每个会话对窗口的贡献只通过 timecalc.window_seconds() 计算；
按天拆分使用 split_by_boundaries() 的累计差值，
因此 total_seconds == sum(by_task) == sum(days) 严格成立。
"""

from datetime import UTC, datetime, tzinfo

import structlog

from .clock import Clock, SystemClock
from .config import DELETED_TASK_TITLE
from .exceptions import ValidationError
from .models import DayBucket, Summary, TaskAggregate, TaskStatus, TaskWithMeta
from .store.protocols import Backend
from .timecalc import (
    EPOCH,
    clip_interval,
    coerce_instant,
    iter_day_windows,
    resolve_range,
    split_by_boundaries,
    window_seconds,
)

log = structlog.get_logger()


class TimeAggregator:
    """时长聚合服务

    tz 决定按天分桶使用的本地日历，由部署配置确定，不随请求变化。
    """

    def __init__(
        self,
        backend: Backend,
        clock: Clock | None = None,
        tz: tzinfo = UTC,
    ) -> None:
        self._tasks = backend.task_store
        self._sessions = backend.session_store
        self._clock = clock or SystemClock()
        self._tz = tz

    async def get_task_total_seconds(self, owner_id: str, task_id: str) -> int:
        """任务全部会话的累计秒数，进行中的会话计到 now"""
        now = self._clock.now()
        sessions = await self._sessions.list_sessions_for_task(owner_id, task_id)
        return self._total_until(sessions, now)

    async def list_with_meta(
        self, owner_id: str, status: TaskStatus | None = None
    ) -> list[TaskWithMeta]:
        """任务列表 + 是否进行中 + 累计秒数"""
        now = self._clock.now()
        tasks = await self._tasks.list_tasks(owner_id, status)
        active = await self._sessions.get_open_session(owner_id)
        result: list[TaskWithMeta] = []
        for task in tasks:
            sessions = await self._sessions.list_sessions_for_task(owner_id, task.id)
            result.append(
                TaskWithMeta(
                    **task.model_dump(),
                    is_active=active is not None and active.task_id == task.id,
                    total_seconds=self._total_until(sessions, now),
                )
            )
        return result

    async def get_summary(
        self,
        owner_id: str,
        window_from: datetime | str,
        window_to: datetime | str,
    ) -> Summary:
        """构建 [from, to) 的汇总

        Raises:
            ValidationError: from/to 无法解析
            StorageError: 存储层失败
        """
        lower = coerce_instant(window_from)
        upper = coerce_instant(window_to)
        if lower is None or upper is None:
            raise ValidationError(f"invalid summary range: {window_from!r} .. {window_to!r}")
        return await self._build_summary(owner_id, lower, upper, self._clock.now())

    async def get_range_summary(
        self, owner_id: str, range_name: str, week_start: str = "mon"
    ) -> tuple[str, Summary]:
        """today / week / month 汇总，窗口终点为 now"""
        now = self._clock.now()
        name, lower, upper = resolve_range(range_name, now, self._tz, week_start)
        return name, await self._build_summary(owner_id, lower, upper, now)

    async def _build_summary(
        self, owner_id: str, lower: datetime, upper: datetime, now: datetime
    ) -> Summary:
        sessions = await self._sessions.list_sessions_in_range(owner_id, lower, upper)

        day_windows = list(iter_day_windows(lower, upper, self._tz))
        # 最后一天的终点不参与拆分，剩余秒数全部落在最后一段
        boundaries = [day_end for _, day_end in day_windows[:-1]]
        day_seconds = [0] * len(day_windows)

        total_seconds = 0
        buckets: dict[str, TaskAggregate] = {}
        for session in sessions:
            seconds = window_seconds(session.start_at, session.end_at, lower, upper, now)
            total_seconds += seconds

            bucket = buckets.get(session.task_id)
            if bucket is None:
                bucket = TaskAggregate(id=session.task_id, title=DELETED_TASK_TITLE)
                buckets[session.task_id] = bucket
            bucket.total_seconds += seconds
            bucket.session_count += 1
            worked_at = session.end_at or session.start_at
            if bucket.last_worked_at is None or worked_at > bucket.last_worked_at:
                bucket.last_worked_at = worked_at

            clipped = clip_interval(session.start_at, session.end_at, lower, upper, now)
            if clipped is None or not day_windows:
                continue
            for index, part in enumerate(split_by_boundaries(*clipped, boundaries)):
                day_seconds[index] += part

        titles = {task.id: task.title for task in await self._tasks.list_tasks(owner_id)}
        for task_id, bucket in buckets.items():
            if task_id in titles:
                bucket.title = titles[task_id]
        by_task = sorted(buckets.values(), key=lambda b: (-b.total_seconds, b.id))

        completed_count = await self._tasks.count_completed(owner_id, lower, upper)

        summary = Summary(
            window_from=lower,
            window_to=upper,
            total_seconds=total_seconds,
            completed_count=completed_count,
            by_task=by_task,
            days=[
                DayBucket(date=day_start, seconds=seconds)
                for (day_start, _), seconds in zip(day_windows, day_seconds, strict=True)
            ],
        )
        log.debug(
            "summary_built",
            owner_id=owner_id,
            session_count=len(sessions),
            total_seconds=total_seconds,
            day_count=len(day_windows),
        )
        return summary

    @staticmethod
    def _total_until(sessions, now: datetime) -> int:
        return sum(
            window_seconds(session.start_at, session.end_at, EPOCH, now, now)
            for session in sessions
        )

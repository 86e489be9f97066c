"""时间区间计算 -- 会话区间与查询窗口的交集秒数

window_seconds() 是“某会话为某窗口贡献多少秒”的唯一计算入口，
总计、按任务、按天三种聚合都通过它计算，保证三者严格相等。

纯函数，无状态；非法或颠倒的时间输入返回 0，不抛异常。
"""

from collections.abc import Iterator
from datetime import UTC, date, datetime, time, timedelta, tzinfo

_ONE_SECOND = timedelta(seconds=1)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def coerce_instant(value: datetime | str | None) -> datetime | None:
    """将 datetime / ISO 字符串转换为 UTC 时刻

    无时区信息的输入按 UTC 处理；无法解析返回 None。
    """
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_instant(value: datetime) -> str:
    """持久化格式：定长 ISO-8601（微秒 + +00:00），字典序即时间序"""
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def elapsed_seconds(start: datetime | str | None, end: datetime | str | None) -> int:
    """start 到 end 的整秒数（向下取整），不为负"""
    start_at = coerce_instant(start)
    end_at = coerce_instant(end)
    if start_at is None or end_at is None or end_at <= start_at:
        return 0
    return (end_at - start_at) // _ONE_SECOND


def clip_interval(
    start_at: datetime | str | None,
    end_at: datetime | str | None,
    window_from: datetime | str | None,
    window_to: datetime | str | None,
    now: datetime,
) -> tuple[datetime, datetime] | None:
    """将会话区间裁剪到窗口内，返回有效 (start, end)；无交集或输入非法返回 None

    进行中会话（end_at 为空）的结束时刻取 now。
    """
    start = coerce_instant(start_at)
    lower = coerce_instant(window_from)
    upper = coerce_instant(window_to)
    if start is None or lower is None or upper is None:
        return None
    if end_at is None:
        end = coerce_instant(now)
    else:
        end = coerce_instant(end_at)
    if end is None:
        return None
    effective_start = max(start, lower)
    effective_end = min(end, upper)
    if effective_end <= effective_start:
        return None
    return effective_start, effective_end


def window_seconds(
    start_at: datetime | str | None,
    end_at: datetime | str | None,
    window_from: datetime | str | None,
    window_to: datetime | str | None,
    now: datetime,
) -> int:
    """会话 [start_at, end_at 或 now) 与窗口 [window_from, window_to) 的交集整秒数"""
    clipped = clip_interval(start_at, end_at, window_from, window_to, now)
    if clipped is None:
        return 0
    return elapsed_seconds(*clipped)


def split_by_boundaries(
    start: datetime, end: datetime, boundaries: list[datetime]
) -> list[int]:
    """按边界把 [start, end) 的整秒数拆分到 len(boundaries)+1 段

    以 start 为基准累计取整后做差，各段之和恒等于 elapsed_seconds(start, end)，
    不会因为每段各自向下取整而丢秒。
    """
    parts: list[int] = []
    consumed = 0
    for boundary in boundaries:
        cut = min(max(boundary, start), end)
        upto = elapsed_seconds(start, cut)
        parts.append(upto - consumed)
        consumed = upto
    parts.append(elapsed_seconds(start, end) - consumed)
    return parts


def local_day_start(instant: datetime, tz: tzinfo) -> datetime:
    """instant 所在本地自然日的零点（返回 UTC 时刻）"""
    local_date = instant.astimezone(tz).date()
    return _midnight(local_date, tz)


def _midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)


def iter_day_windows(
    window_from: datetime, window_to: datetime, tz: tzinfo
) -> Iterator[tuple[datetime, datetime]]:
    """从 window_from 所在本地日零点起，逐日产出 [day_start, next_day_start)，直到 window_to

    每一天的起点都按本地日历重新计算零点，夏令时切换日长度为 23/25 小时。
    """
    day = window_from.astimezone(tz).date()
    start = _midnight(day, tz)
    while start < window_to:
        day += timedelta(days=1)
        end = _midnight(day, tz)
        yield start, end
        start = end


def resolve_range(
    name: str,
    now: datetime,
    tz: tzinfo,
    week_start: str = "mon",
) -> tuple[str, datetime, datetime]:
    """将 today / week / month 解析为 (range_name, from, to)

    to 固定为 now；未知名称按 today 处理。
    """
    local_now = now.astimezone(tz)
    today = local_now.date()
    if name == "week":
        # weekday(): 周一为 0
        offset = (today.weekday() + 1) % 7 if week_start == "sun" else today.weekday()
        return "week", _midnight(today - timedelta(days=offset), tz), now
    if name == "month":
        return "month", _midnight(today.replace(day=1), tz), now
    return "today", _midnight(today, tz), now

"""
Aggregate statistics over a user's tasks for the summary report.

Everything here is a pure function of its arguments: callers fetch the records
for the current and previous windows and pass an explicit `now`.

Week windows start on Sunday (Sunday=0 indexing), matching the weekday names
used for the per-day breakdown.
"""
from datetime import datetime, timedelta
from typing import Iterable, Optional

from models import AnalyticsSnapshot, Bucket, PriorityAnalysis, Task

PERIODS = ("today", "week")

PERIOD_LABELS = {
    "today": ("오늘", "어제"),
    "week": ("이번 주", "지난 주"),
}

# Indexed Sunday=0 .. Saturday=6
DAY_NAMES = ["일요일", "월요일", "화요일", "수요일", "목요일", "금요일", "토요일"]


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored date or datetime string; date-only values mean midnight."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def has_time(value: Optional[str]) -> bool:
    """True when a due value carries a time of day, not just a date."""
    return bool(value) and len(value) > 10


def day_index(moment: datetime) -> int:
    """Sunday=0 .. Saturday=6."""
    return (moment.weekday() + 1) % 7


def percent(part: int, whole: int) -> int:
    """Integer percentage rounded half up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


def period_windows(period: str, now: Optional[datetime] = None) -> tuple[datetime, datetime, datetime, datetime]:
    """Return (current_start, current_end, previous_start, previous_end) as half-open ranges."""
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period}")
    now = now or datetime.now()
    midnight = datetime(now.year, now.month, now.day)

    if period == "today":
        current_start = midnight
        span = timedelta(days=1)
    else:
        current_start = midnight - timedelta(days=day_index(now))
        span = timedelta(days=7)

    return current_start, current_start + span, current_start - span, current_start


def in_window(task: Task, start: datetime, end: datetime) -> bool:
    """Created within [start, end), or due on a calendar date inside it."""
    created = parse_timestamp(task.created_at)
    if created and start <= created < end:
        return True
    due = parse_timestamp(task.due_date)
    if due:
        due_day = datetime(due.year, due.month, due.day)
        return start <= due_day < end
    return False


def empty_snapshot(period: str) -> AnalyticsSnapshot:
    label, previous_label = PERIOD_LABELS[period]
    return AnalyticsSnapshot(
        period=period,
        period_label=label,
        previous_period_label=previous_label,
        is_empty=True,
    )


def _is_completed(task: Task) -> bool:
    return task.status == "completed"


def _is_on_time(task: Task) -> bool:
    due = parse_timestamp(task.due_date)
    if due is None:
        return True
    finished = parse_timestamp(task.updated_at) or parse_timestamp(task.created_at)
    return finished is not None and finished <= due


def _is_postponed(task: Task) -> bool:
    # Edited after the deadline while still open. Due date history is not tracked.
    due = parse_timestamp(task.due_date)
    updated = parse_timestamp(task.updated_at)
    created = parse_timestamp(task.created_at)
    if due is None or updated is None or created is None:
        return False
    return updated > created and not _is_completed(task) and updated > due


def _count(buckets: dict, key, task: Task) -> None:
    bucket = buckets.setdefault(key, Bucket())
    bucket.total += 1
    if _is_completed(task):
        bucket.completed += 1


def completion_rate(records: Iterable[Task]) -> int:
    records = list(records)
    return percent(sum(1 for task in records if _is_completed(task)), len(records))


def aggregate(
    records: list[Task],
    period: str,
    previous: Iterable[Task] = (),
    now: Optional[datetime] = None,
) -> AnalyticsSnapshot:
    """
    Compute the snapshot for `records` (the current window's tasks).

    `previous` holds the comparison window's tasks and only feeds
    previous_completion_rate.
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period}")
    if not records:
        return empty_snapshot(period)

    now = now or datetime.now()
    label, previous_label = PERIOD_LABELS[period]

    completed = [task for task in records if _is_completed(task)]
    pending = [task for task in records if task.status == "pending"]
    overdue = [
        task for task in records
        if not _is_completed(task)
        and parse_timestamp(task.due_date) is not None
        and parse_timestamp(task.due_date) < now
    ]

    rate = percent(len(completed), len(records))
    previous_rate = completion_rate(previous)

    priority_analysis = PriorityAnalysis()
    priority_buckets = {1: priority_analysis.high, 2: priority_analysis.medium, 3: priority_analysis.low}
    hourly: dict[int, Bucket] = {}
    tags: dict[str, Bucket] = {}
    daily: dict[str, Bucket] = {}

    for task in records:
        bucket = priority_buckets.get(task.priority)
        if bucket is not None:
            bucket.total += 1
            if _is_completed(task):
                bucket.completed += 1

        if has_time(task.due_date):
            due = parse_timestamp(task.due_date)
            if due is not None:
                _count(hourly, due.hour, task)

        for tag in task.tags:
            _count(tags, tag, task)

        if period == "week":
            moment = parse_timestamp(task.due_date) or parse_timestamp(task.created_at)
            if moment is not None:
                _count(daily, DAY_NAMES[day_index(moment)], task)

    return AnalyticsSnapshot(
        period=period,
        period_label=label,
        previous_period_label=previous_label,
        total=len(records),
        completed=len(completed),
        pending=len(pending),
        urgent=sum(1 for task in records if task.priority == 1),
        overdue=len(overdue),
        completion_rate=rate,
        previous_completion_rate=previous_rate,
        completion_rate_change=rate - previous_rate,
        deadline_compliance_rate=percent(sum(1 for task in completed if _is_on_time(task)), len(completed)),
        postponement_rate=percent(sum(1 for task in records if _is_postponed(task)), len(records)),
        priority_analysis=priority_analysis,
        hourly_productivity=dict(sorted(hourly.items())),
        tag_analysis=tags,
        daily_productivity=daily,
    )

"""
Narrative productivity summaries.

The snapshot and the window's tasks are rendered into a single prompt; the
model's JSON reply is then reconciled field by field against the report schema.
Any field that is missing or has the wrong shape gets a default derived from
the snapshot, so a report always comes back fully populated.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError as SchemaError

from analytics import DAY_NAMES, has_time, parse_timestamp, percent
from errors import UpstreamParseFailed
from llm import Completion
from models import (
    AnalyticsSnapshot,
    CompletionAnalysis,
    Motivation,
    ProductivityPatterns,
    SummaryReport,
    Task,
    TimeManagement,
    TodoItem,
)
from prompts import SUMMARY_PROMPT, TODAY_FOCUS, WEEK_FOCUS
from task_parser import extract_json

logger = logging.getLogger(__name__)

MAX_FOCUS_TASKS = 5
FOCUS_HORIZON = timedelta(days=2)

STATUS_GLYPHS = {"completed": "✅ 완료", "pending": "⏳ 진행중"}
PRIORITY_GLYPHS = {1: "🔴 높음", 2: "🟡 보통", 3: "🟢 낮음"}

_text = TypeAdapter(str)


# Derived task lists (independent of the model)

def _todo_item(task: Task) -> TodoItem:
    return TodoItem(title=task.title, priority=task.priority, due_date=task.due_date, tags=task.tags)


def remaining_todos(records: list[Task]) -> list[TodoItem]:
    """Pending tasks, high priority first; ties keep their original order."""
    pending = [task for task in records if task.status == "pending"]
    return [_todo_item(task) for task in sorted(pending, key=lambda task: task.priority)]


def focus_tasks(records: list[Task], now: Optional[datetime] = None) -> list[TodoItem]:
    """
    Up to five pending tasks worth doing first: high priority, due today, or due
    within two days (overdue included). Due-today tasks lead, then by priority.
    """
    now = now or datetime.now()
    today = now.strftime("%Y-%m-%d")

    def due_today(task: Task) -> bool:
        return bool(task.due_date) and task.due_date[:10] == today

    def qualifies(task: Task) -> bool:
        due = parse_timestamp(task.due_date)
        due_soon = due is not None and due <= now + FOCUS_HORIZON
        return task.priority == 1 or due_today(task) or due_soon

    candidates = [task for task in records if task.status == "pending" and qualifies(task)]
    candidates.sort(key=lambda task: (0 if due_today(task) else 1, task.priority))
    return [_todo_item(task) for task in candidates[:MAX_FOCUS_TASKS]]


# Prompt construction

def _format_due(value: Optional[str]) -> str:
    due = parse_timestamp(value)
    if due is None:
        return "기한 없음"
    formatted = f"{due.year}. {due.month}. {due.day}."
    if has_time(value):
        formatted += f" {due:%H:%M}"
    return formatted


def _format_task_line(task: Task) -> str:
    status = STATUS_GLYPHS.get(task.status, task.status)
    priority = PRIORITY_GLYPHS.get(task.priority, PRIORITY_GLYPHS[3])
    tags = f"[{', '.join(task.tags)}]" if task.tags else ""
    return f"- {task.title} {status} {priority} (마감: {_format_due(task.due_date)}) {tags}".rstrip()


def _bucket_lines(buckets: dict, label) -> list[str]:
    return [
        f"- {label(key)}: {bucket.completed}/{bucket.total}개 완료 ({percent(bucket.completed, bucket.total)}%)"
        for key, bucket in buckets.items()
    ] or ["- 데이터 없음"]


def build_summary_prompt(snapshot: AnalyticsSnapshot, records: list[Task], period: str) -> str:
    change = snapshot.completion_rate_change
    priority = snapshot.priority_analysis

    sections = [
        "## 1. 완료율 분석",
        f"- 현재 기간: 총 {snapshot.total}개 중 {snapshot.completed}개 완료 ({snapshot.completion_rate}%)",
        f"- 이전 기간: 완료율 {snapshot.previous_completion_rate}%",
        f"- 변화: {'+' if change > 0 else ''}{change}%p",
        f"- 마감일 준수율: {snapshot.deadline_compliance_rate}%",
        f"- 연기율: {snapshot.postponement_rate}%",
        f"- 긴급 할 일: {snapshot.urgent}개, 마감 지난 할 일: {snapshot.overdue}개",
        "",
        "## 2. 우선순위별 완료 패턴",
        f"- 높음(1순위): {priority.high.completed}/{priority.high.total}개 완료",
        f"- 보통(2순위): {priority.medium.completed}/{priority.medium.total}개 완료",
        f"- 낮음(3순위): {priority.low.completed}/{priority.low.total}개 완료",
        "",
        "## 3. 시간대별 생산성",
        *_bucket_lines(dict(sorted(snapshot.hourly_productivity.items())), lambda hour: f"{hour}시"),
        "",
        "## 4. 태그별 업무 분포",
        *_bucket_lines(snapshot.tag_analysis, str),
    ]

    if period == "week":
        ordered = {day: snapshot.daily_productivity[day] for day in DAY_NAMES if day in snapshot.daily_productivity}
        sections += ["", "## 5. 요일별 생산성", *_bucket_lines(ordered, str)]

    sections += ["", "## 할 일 목록 상세", *[_format_task_line(task) for task in records]]

    return SUMMARY_PROMPT.format(
        period_label=snapshot.period_label,
        previous_period_label=snapshot.previous_period_label,
        sections="\n".join(sections),
        focus=TODAY_FOCUS if period == "today" else WEEK_FOCUS,
    )


# Deterministic defaults

def _trend(change: int) -> str:
    if change > 0:
        return f"이전 기간 대비 {change}%p 향상"
    if change < 0:
        return f"이전 기간 대비 {-change}%p 하락"
    return "안정적인 수준 유지"


def _productive_hours(snapshot: AnalyticsSnapshot) -> str:
    done = {hour: bucket for hour, bucket in snapshot.hourly_productivity.items() if bucket.completed}
    if not done:
        return "다양한 시간대에 고른 활동"
    best = max(done, key=lambda hour: (done[hour].completed, -hour))
    return f"{best}시 무렵에 가장 많은 할 일을 완료했습니다"


def _best_area(snapshot: AnalyticsSnapshot) -> str:
    done = {tag: bucket for tag, bucket in snapshot.tag_analysis.items() if bucket.completed}
    if not done:
        return "기본적인 할 일 관리를 잘하고 있습니다"
    best = max(done, key=lambda tag: percent(done[tag].completed, done[tag].total))
    return f"'{best}' 영역의 완료율이 가장 높습니다"


def default_sections(snapshot: AnalyticsSnapshot) -> dict[str, dict[str, str]]:
    return {
        "completionAnalysis": {
            "rate": f"완료율 {snapshot.completion_rate}%",
            "trend": _trend(snapshot.completion_rate_change),
            "strengths": "꾸준한 진행을 보이고 있습니다",
        },
        "timeManagement": {
            "deadlineCompliance": f"마감일 준수율 {snapshot.deadline_compliance_rate}%",
            "postponementPattern": "일부 연기 발생" if snapshot.postponement_rate > 0 else "계획대로 진행",
            "productiveHours": _productive_hours(snapshot),
        },
        "productivityPatterns": {
            "bestPerformingAreas": _best_area(snapshot),
            "strugglingAreas": "더 많은 데이터로 패턴을 분석해보세요",
            "priorityEffectiveness": "우선순위 설정이 도움이 되고 있습니다",
        },
        "motivation": {
            "achievements": f"{snapshot.period_label} {snapshot.completed}개의 할 일을 완료했습니다!",
            "encouragement": "꾸준한 노력이 보기 좋습니다",
            "nextSteps": "다음에도 이런 속도로 진행해보세요",
        },
    }


DEFAULT_INSIGHTS = ["더 많은 할 일을 추가하시면 더 자세한 분석을 제공할 수 있습니다"]
DEFAULT_RECOMMENDATIONS = ["꾸준히 할 일을 관리하고 있으니 계속 진행하세요"]


# Reconciliation

def _valid_text(value: Any) -> Optional[str]:
    try:
        text = _text.validate_python(value, strict=True)
    except SchemaError:
        return None
    return text.strip() or None


def _valid_list(value: Any) -> Optional[list[str]]:
    """A list of strings with blanks dropped; None when the value is not a list."""
    if not isinstance(value, list):
        return None
    return [item for item in (_valid_text(entry) for entry in value) if item]


def _reconcile_section(value: Any, defaults: dict[str, str]) -> dict[str, str]:
    source = value if isinstance(value, dict) else {}
    return {key: _valid_text(source.get(key)) or default for key, default in defaults.items()}


def reconcile(
    data: dict,
    snapshot: AnalyticsSnapshot,
    records: list[Task],
    now: Optional[datetime] = None,
) -> SummaryReport:
    """Build a complete SummaryReport from whatever the model returned."""
    sections = default_sections(snapshot)
    pending_urgent = [task.title for task in records if task.priority == 1 and task.status == "pending"]

    urgent = _valid_list(data.get("urgentTasks"))
    insights = _valid_list(data.get("insights"))
    recommendations = _valid_list(data.get("recommendations"))

    return SummaryReport(
        summary=_valid_text(data.get("summary")) or (
            f"{snapshot.period_label} 총 {snapshot.total}개의 할 일 중 "
            f"{snapshot.completed}개 완료 ({snapshot.completion_rate}%)"
        ),
        urgentTasks=urgent if urgent is not None else pending_urgent,
        remainingTodos=remaining_todos(records),
        focusTasks=focus_tasks(records, now),
        completionAnalysis=CompletionAnalysis(
            **_reconcile_section(data.get("completionAnalysis"), sections["completionAnalysis"])
        ),
        timeManagement=TimeManagement(
            **_reconcile_section(data.get("timeManagement"), sections["timeManagement"])
        ),
        productivityPatterns=ProductivityPatterns(
            **_reconcile_section(data.get("productivityPatterns"), sections["productivityPatterns"])
        ),
        insights=insights or list(DEFAULT_INSIGHTS),
        recommendations=recommendations or list(DEFAULT_RECOMMENDATIONS),
        motivation=Motivation(**_reconcile_section(data.get("motivation"), sections["motivation"])),
        dailyProductivity=snapshot.daily_productivity if snapshot.period == "week" else None,
    )


def empty_report(snapshot: AnalyticsSnapshot) -> SummaryReport:
    """Report for a window without tasks; no model call is made."""
    report = reconcile({}, snapshot, [])
    report.summary = f"{snapshot.period_label} 등록된 할 일이 없습니다."
    report.insights = ["새로운 할 일을 추가해보세요!"]
    report.recommendations = ["할 일을 추가하여 생산성을 높여보세요."]
    return report


async def summarize(
    snapshot: AnalyticsSnapshot,
    records: list[Task],
    period: str,
    complete: Completion,
    now: Optional[datetime] = None,
) -> SummaryReport:
    if snapshot.is_empty:
        return empty_report(snapshot)

    response = await complete(build_summary_prompt(snapshot, records, period))
    try:
        data = extract_json(response)
    except UpstreamParseFailed:
        # Unreadable replies degrade to the default report
        logger.warning("Summary response had no usable JSON; using defaults")
        data = {}

    return reconcile(data, snapshot, records, now)

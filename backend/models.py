from pydantic import BaseModel, Field
from typing import Any, Literal, Optional

TaskStatus = Literal["pending", "completed"]
Period = Literal["today", "week"]


class Task(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None  # YYYY-MM-DD or YYYY-MM-DDTHH:MM, local time
    status: TaskStatus = "pending"
    priority: int = 2  # 1=high, 2=medium, 3=low
    tags: list[str] = Field(default_factory=list)
    created_at: str  # ISO format datetime string
    updated_at: str


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    status: TaskStatus = "pending"
    priority: Any = 2  # coerced to 1-3 by the repository
    tags: list[Any] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Any = None
    tags: Optional[list[Any]] = None


class TaskFilter(BaseModel):
    status: Literal["pending", "completed", "all"] = "all"
    priority: Literal["1", "2", "3", "all"] = "all"
    search: Optional[str] = None
    sort_by: Literal["created_at", "due_date", "title", "priority", "created", "due"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class TaskStats(BaseModel):
    total: int = 0
    completed: int = 0
    pending: int = 0
    overdue: int = 0
    completion_rate: float = 0.0


class TaskDraft(BaseModel):
    """Structured task produced from free text; always pending."""
    title: str
    description: str = ""
    due_date: str  # YYYY-MM-DD
    due_time: Optional[str] = None  # HH:MM, 24-hour
    priority: int = 2
    status: Literal["pending"] = "pending"
    tags: list[str] = Field(default_factory=list)


class ParseRequest(BaseModel):
    input: Any = None  # validated by the parser so we can answer with specific codes
    save: bool = False


class SummaryRequest(BaseModel):
    period: Any = None


class Bucket(BaseModel):
    total: int = 0
    completed: int = 0


class PriorityAnalysis(BaseModel):
    high: Bucket = Field(default_factory=Bucket)
    medium: Bucket = Field(default_factory=Bucket)
    low: Bucket = Field(default_factory=Bucket)


class AnalyticsSnapshot(BaseModel):
    period: Period
    period_label: str
    previous_period_label: str
    is_empty: bool = False

    total: int = 0
    completed: int = 0
    pending: int = 0
    urgent: int = 0
    overdue: int = 0

    completion_rate: int = 0
    previous_completion_rate: int = 0
    completion_rate_change: int = 0
    deadline_compliance_rate: int = 0
    postponement_rate: int = 0

    priority_analysis: PriorityAnalysis = Field(default_factory=PriorityAnalysis)
    hourly_productivity: dict[int, Bucket] = Field(default_factory=dict)
    tag_analysis: dict[str, Bucket] = Field(default_factory=dict)
    daily_productivity: dict[str, Bucket] = Field(default_factory=dict)  # week only


class TodoItem(BaseModel):
    title: str
    priority: int
    due_date: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class CompletionAnalysis(BaseModel):
    rate: str
    trend: str
    strengths: str


class TimeManagement(BaseModel):
    deadlineCompliance: str
    postponementPattern: str
    productiveHours: str


class ProductivityPatterns(BaseModel):
    bestPerformingAreas: str
    strugglingAreas: str
    priorityEffectiveness: str


class Motivation(BaseModel):
    achievements: str
    encouragement: str
    nextSteps: str


class SummaryReport(BaseModel):
    # Field names follow the JSON contract the UI consumes
    summary: str
    urgentTasks: list[str]
    remainingTodos: list[TodoItem]
    focusTasks: list[TodoItem]
    completionAnalysis: CompletionAnalysis
    timeManagement: TimeManagement
    productivityPatterns: ProductivityPatterns
    insights: list[str]
    recommendations: list[str]
    motivation: Motivation
    dailyProductivity: Optional[dict[str, Bucket]] = None

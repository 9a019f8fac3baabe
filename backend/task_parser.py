"""
Natural-language task parsing.

Free text is validated and normalized locally, sent to the completion
collaborator with a fixed reference prompt, and the JSON that comes back is
repaired into a TaskDraft. Model output is never trusted as-is.
"""
import json
import logging
import re
from datetime import date, timedelta
from typing import Any, Optional

from database import MAX_DESCRIPTION_LENGTH, MAX_TITLE_LENGTH, normalize_priority, normalize_tags
from errors import UpstreamParseFailed, ValidationError
from llm import Completion
from models import TaskCreate, TaskDraft
from prompts import PARSE_PROMPT

logger = logging.getLogger(__name__)

MIN_INPUT_CHARS = 2
MAX_INPUT_LENGTH = 500
MIN_TITLE_LENGTH = 2
DEFAULT_TITLE = "새 할 일"
ELLIPSIS = "..."

# Word characters, whitespace, Hangul syllables and jamo, common ASCII punctuation
DISALLOWED_CHARS = re.compile(r"[^\w\s가-힣ㄱ-ㅎㅏ-ㅣ.,!?@#$%^&*()_+\-=\[\]{}|;':\"\\<>/~`]")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

_decoder = json.JSONDecoder()


def validate_input(value: Any) -> str:
    """Reject unusable input before any network call. Returns the raw text."""
    if value is None or not isinstance(value, str):
        raise ValidationError("입력 텍스트가 필요합니다.", "MISSING_INPUT")
    if len(value) == 0:
        raise ValidationError("내용을 입력해 주세요.", "EMPTY_INPUT")

    meaningful = re.sub(r"\s", "", value)
    if len(meaningful) == 0:
        raise ValidationError("내용을 입력해 주세요.", "INVALID_CONTENT")
    if len(meaningful) < MIN_INPUT_CHARS:
        raise ValidationError(
            f"입력 텍스트는 최소 {MIN_INPUT_CHARS}자 이상이어야 합니다.", "TOO_SHORT"
        )
    if len(value) > MAX_INPUT_LENGTH:
        raise ValidationError(
            f"입력 텍스트는 최대 {MAX_INPUT_LENGTH}자까지 입력 가능합니다.", "TOO_LONG"
        )
    return value


def preprocess_input(text: str) -> str:
    processed = text.strip()
    processed = re.sub(r"\s+", " ", processed)
    # Capitalize the first letter of each word
    processed = re.sub(r"\b\w", lambda match: match.group().upper(), processed.lower())
    # Drops emoji and other symbols outside the allow-list
    return DISALLOWED_CHARS.sub("", processed)


def reference_dates(today: date) -> dict[str, str]:
    """Absolute dates for the relative phrases listed in the prompt."""
    weekday = today.weekday()  # Monday=0
    this_friday = today + timedelta(days=(4 - weekday) % 7)
    next_monday = today + timedelta(days=7 - weekday)
    weekend = today if weekday == 6 else today + timedelta(days=(5 - weekday) % 7)
    return {
        "today": today.isoformat(),
        "tomorrow": (today + timedelta(days=1)).isoformat(),
        "day_after_tomorrow": (today + timedelta(days=2)).isoformat(),
        "this_friday": this_friday.isoformat(),
        "next_monday": next_monday.isoformat(),
        "weekend": weekend.isoformat(),
    }


def build_parse_prompt(text: str, today: date) -> str:
    return PARSE_PROMPT.format(input=text, **reference_dates(today))


def extract_json(text: Any) -> dict:
    """
    Pull the JSON object out of a model reply that may be wrapped in prose or
    markdown fences. Raises UpstreamParseFailed when there is none.
    """
    if not isinstance(text, str):
        raise UpstreamParseFailed()

    start = text.find("{")
    if start == -1:
        logger.error(f"No JSON object in AI response: {text!r}")
        raise UpstreamParseFailed()

    try:
        value, _ = _decoder.raw_decode(text, start)
    except json.JSONDecodeError:
        # Fall back to the widest {...} span
        end = text.rfind("}")
        try:
            value = json.loads(text[start:end + 1]) if end > start else None
        except json.JSONDecodeError:
            value = None

    if not isinstance(value, dict):
        logger.error(f"Failed to parse AI response: {text!r}")
        raise UpstreamParseFailed()
    return value


def _coerce_priority(value: Any) -> int:
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    elif isinstance(value, float) and value.is_integer():
        value = int(value)
    priority = normalize_priority(value)
    return max(1, min(3, priority))


def _coerce_title(value: Any, fallback: str) -> str:
    title = value.strip() if isinstance(value, str) else ""
    title = title or fallback.strip()
    if len(title) > MAX_TITLE_LENGTH:
        title = title[:MAX_TITLE_LENGTH - len(ELLIPSIS)] + ELLIPSIS
    if len(title) < MIN_TITLE_LENGTH:
        title = DEFAULT_TITLE
    return title


def _coerce_due_date(value: Any, today: date) -> str:
    if not isinstance(value, str) or not DATE_PATTERN.match(value.strip()):
        return today.isoformat()
    try:
        due = date.fromisoformat(value.strip())
    except ValueError:
        return today.isoformat()
    # Past dates are pulled forward to today
    return max(due, today).isoformat()


def _coerce_due_time(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    match = TIME_PATTERN.match(value.strip())
    if not match:
        return None
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def postprocess(data: dict, today: date, fallback_title: str = "") -> TaskDraft:
    """Repair a parsed model reply into a TaskDraft that satisfies the Task invariants."""
    description = data.get("description")
    description = description.strip()[:MAX_DESCRIPTION_LENGTH] if isinstance(description, str) else ""

    return TaskDraft(
        title=_coerce_title(data.get("title"), fallback_title),
        description=description,
        due_date=_coerce_due_date(data.get("due_date"), today),
        due_time=_coerce_due_time(data.get("due_time")),
        priority=_coerce_priority(data.get("priority")),
        tags=normalize_tags(data.get("tags")),
    )


async def parse(value: Any, complete: Completion, today: Optional[date] = None) -> TaskDraft:
    """Turn free text into a TaskDraft using the completion collaborator."""
    text = validate_input(value)
    today = today or date.today()
    processed = preprocess_input(text)

    response = await complete(build_parse_prompt(processed, today))
    logger.info(f"Parsed task input ({len(text)} chars)")
    return postprocess(extract_json(response), today, processed)


def draft_to_task_create(draft: TaskDraft) -> TaskCreate:
    due_date = f"{draft.due_date}T{draft.due_time}" if draft.due_time else draft.due_date
    return TaskCreate(
        title=draft.title,
        description=draft.description or None,
        due_date=due_date,
        status=draft.status,
        priority=draft.priority,
        tags=draft.tags,
    )

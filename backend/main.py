from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime
from typing import Literal, Optional
import asyncio
import logging
import time

import config
import database
import llm
from analytics import aggregate, period_windows, PERIODS
from auth import get_current_user_id
from database import (
    create_task_db,
    get_task_db,
    list_tasks_db,
    update_task_db,
    delete_task_db,
    get_tasks_in_window,
    get_task_stats,
)
from errors import AppError, InternalError, NotFoundError, ValidationError
from models import (
    ParseRequest,
    SummaryReport,
    SummaryRequest,
    Task,
    TaskCreate,
    TaskFilter,
    TaskStats,
    TaskUpdate,
)
from summary import summarize
from task_parser import draft_to_task_create, parse

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    if config.JWT_SECRET == config.DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not set; using the insecure development default")
    database.init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} "
        f"({time.time() - start_time:.3f}s)"
    )
    return response


@app.exception_handler(AppError)
async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    else:
        logger.warning(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error: {exc}")
    return JSONResponse(status_code=500, content=InternalError().to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    logger.warning(f"Invalid request: {details}")
    body = ValidationError().to_dict()
    body["details"] = details
    return JSONResponse(status_code=400, content=body)


async def complete_parse(prompt: str) -> str:
    return await llm.complete(prompt, config.LLM_PARSE_MAX_TOKENS)


async def complete_summary(prompt: str) -> str:
    return await llm.complete(prompt, config.LLM_SUMMARY_MAX_TOKENS)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/tasks")
def get_tasks(
    search: Optional[str] = None,
    status: Literal["pending", "completed", "all"] = "all",
    priority: Literal["1", "2", "3", "all"] = "all",
    sort_by: Literal["created_at", "due_date", "title", "priority", "created", "due"] = Query("created_at", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    user_id: str = Depends(get_current_user_id),
) -> list[Task]:
    task_filter = TaskFilter(
        search=search,
        status=status,
        priority=priority,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return list_tasks_db(user_id, task_filter)


@app.post("/tasks", status_code=201)
def create_task(task_data: TaskCreate, user_id: str = Depends(get_current_user_id)) -> Task:
    return create_task_db(user_id, **task_data.model_dump())


@app.get("/tasks/stats")
def get_stats(user_id: str = Depends(get_current_user_id)) -> TaskStats:
    return get_task_stats(user_id)


@app.get("/tasks/{task_id}")
def get_task(task_id: str, user_id: str = Depends(get_current_user_id)) -> Task:
    task = get_task_db(user_id, task_id)
    if not task:
        raise NotFoundError()
    return task


@app.put("/tasks/{task_id}")
@app.patch("/tasks/{task_id}")
def update_task(task_id: str, task_data: TaskUpdate, user_id: str = Depends(get_current_user_id)) -> Task:
    result = update_task_db(user_id, task_id, **task_data.model_dump(exclude_unset=True))
    if not result:
        raise NotFoundError("할 일을 찾을 수 없거나 수정 권한이 없습니다.")
    return result


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str, user_id: str = Depends(get_current_user_id)) -> dict:
    if not delete_task_db(user_id, task_id):
        raise NotFoundError()
    return {"status": "deleted", "message": "할 일이 성공적으로 삭제되었습니다."}


@app.post("/ai/parse-todo")
async def parse_todo(
    parse_request: ParseRequest,
    response: Response,
    user_id: str = Depends(get_current_user_id),
) -> dict:
    """Turn free text into a task draft; with save=true the draft is stored as well."""
    draft = await parse(parse_request.input, complete_parse)
    if not parse_request.save:
        return draft.model_dump()

    task = create_task_db(user_id, **draft_to_task_create(draft).model_dump())
    response.status_code = 201
    return {"draft": draft.model_dump(), "task": task.model_dump()}


@app.post("/ai/summary")
async def ai_summary(
    summary_request: SummaryRequest,
    user_id: str = Depends(get_current_user_id),
) -> SummaryReport:
    """Analyse the user's tasks for today or this week and return a narrative report."""
    period = summary_request.period
    if period not in PERIODS:
        raise ValidationError("분석 기간이 필요합니다. (today 또는 week)", "INVALID_PERIOD")

    now = datetime.now()
    current_start, current_end, previous_start, previous_end = period_windows(period, now)
    records, previous = await asyncio.gather(
        asyncio.to_thread(get_tasks_in_window, user_id, current_start, current_end),
        asyncio.to_thread(get_tasks_in_window, user_id, previous_start, previous_end),
    )

    snapshot = aggregate(records, period, previous, now)
    logger.info(
        f"Summary for {user_id} ({period}): {snapshot.completed}/{snapshot.total} completed"
    )
    return await summarize(snapshot, records, period, complete_summary, now)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

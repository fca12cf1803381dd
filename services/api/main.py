from __future__ import annotations

import asyncio
import logging
import os
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from property_quote_engine.errors import QuoteEngineError, TaskNotFoundError
from property_quote_engine.estimation import estimate_duration
from property_quote_engine.logging_config import set_trace_id, setup_logging
from property_quote_engine.models.quote import QuoteData, QuoteGenerationRequest
from property_quote_engine.models.task import (
    ProjectResult,
    ProjectStatusReport,
    SchedulingOptions,
    TaskMetrics,
    TaskRow,
    TaskStatus,
)
from property_quote_engine.project import ProjectOrchestrator, project_status, task_metrics
from property_quote_engine.quote_generator import QuoteGenerator, RetryingQuoteGenerator
from property_quote_engine.secret_manager import get_json_secret, get_secret
from property_quote_engine.sheets_task_store import SheetsTaskStore
from property_quote_engine.task_store import InMemoryTaskStore
from property_quote_engine.vertex_ai_adapter import VertexAIAdapter

MIN_TRANSCRIPT_LENGTH = 50


class GenerateQuoteRequest(QuoteGenerationRequest):
    transcript: str = Field(min_length=MIN_TRANSCRIPT_LENGTH)


class QuoteSummary(BaseModel):
    total_services: int
    categories: list[str]
    estimated_duration: str

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class GenerateQuoteResponse(BaseModel):
    quote: QuoteData
    summary: QuoteSummary


class AcceptQuoteRequest(BaseModel):
    quote: QuoteData
    assignment_options: SchedulingOptions | None = Field(default=None, alias="assignmentOptions")

    class Config:
        populate_by_name = True


class AcceptQuoteResponse(BaseModel):
    quote: QuoteData
    project: ProjectResult


class ProjectStatusRequest(BaseModel):
    tasks: list[TaskRow]


class UpdateTaskStatusRequest(BaseModel):
    task: str
    status: TaskStatus


# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
PROJECT_ID = os.getenv("PROJECT_ID")
VERTEX_LOCATION = os.getenv("VERTEX_LOCATION", "australia-southeast1")
VERTEX_MODEL = os.getenv("VERTEX_MODEL", "gemini-1.5-pro")
GOOGLE_SHEET_ID = os.getenv("GOOGLE_SHEET_ID")
TASKS_WORKSHEET = os.getenv("TASKS_WORKSHEET", "Tasks")
QUOTE_MAX_RETRIES = int(os.getenv("QUOTE_MAX_RETRIES", "3"))

# Setup logging
setup_logging(environment=ENVIRONMENT, project_id=PROJECT_ID)
logger = logging.getLogger(__name__)

app = FastAPI(title="Property Quote Engine API", version="0.1.0")


def _build_task_store():
    # In-memory for dev, Google Sheets otherwise
    if ENVIRONMENT == "dev":
        return InMemoryTaskStore()
    sheet_id = GOOGLE_SHEET_ID or (PROJECT_ID and get_secret(PROJECT_ID, "google-sheet-id"))
    if not sheet_id:
        raise RuntimeError("GOOGLE_SHEET_ID is not configured")
    service_account_info = get_json_secret(PROJECT_ID, "sheets-service-account") if PROJECT_ID else None
    return SheetsTaskStore.open(
        sheet_id=sheet_id,
        worksheet_name=TASKS_WORKSHEET,
        service_account_info=service_account_info,
    )


task_store = _build_task_store()
orchestrator = ProjectOrchestrator(task_store=task_store)
quote_generator = (
    RetryingQuoteGenerator(
        QuoteGenerator(
            VertexAIAdapter(project_id=PROJECT_ID, location=VERTEX_LOCATION, model_name=VERTEX_MODEL)
        ),
        max_attempts=QUOTE_MAX_RETRIES,
    )
    if PROJECT_ID
    else None
)


@app.middleware("http")
async def assign_trace_id(request: Request, call_next):
    set_trace_id(request.headers.get("X-Cloud-Trace-Context") or str(uuid.uuid4()))
    return await call_next(request)


def _status_code_for(exc: QuoteEngineError) -> int:
    if isinstance(exc, TaskNotFoundError):
        return 404
    return 502 if exc.retryable else 422


@app.exception_handler(QuoteEngineError)
async def quote_engine_error_handler(request: Request, exc: QuoteEngineError) -> JSONResponse:
    logger.error(
        "Request failed",
        extra={"path": request.url.path, "error": exc.detail, "error_kind": type(exc).__name__},
    )
    return JSONResponse(
        {
            "error": type(exc).__name__,
            "details": exc.detail,
            "retryable": exc.retryable,
        },
        status_code=_status_code_for(exc),
    )


@app.post("/v1/quotes:generate", response_model=GenerateQuoteResponse, response_model_by_alias=True)
async def generate_quote(request: GenerateQuoteRequest) -> GenerateQuoteResponse:
    if quote_generator is None:
        raise HTTPException(status_code=503, detail="Quote generation is not configured")

    logger.info(
        "Generating quote",
        extra={"transcript_length": len(request.transcript)},
    )
    quote = await asyncio.to_thread(quote_generator.generate, request)
    summary = QuoteSummary(
        total_services=len(quote.services),
        categories=list(dict.fromkeys(service.category for service in quote.services)),
        estimated_duration=estimate_duration(quote.services),
    )
    return GenerateQuoteResponse(quote=quote, summary=summary)


@app.post("/v1/quotes:accept", response_model=AcceptQuoteResponse, response_model_by_alias=True)
async def accept_quote(request: AcceptQuoteRequest) -> AcceptQuoteResponse:
    quote = request.quote
    project = await asyncio.to_thread(orchestrator.accept_quote, quote, request.assignment_options)
    return AcceptQuoteResponse(quote=quote, project=project)


@app.get(
    "/v1/projects/{job_id}/status",
    response_model=ProjectStatusReport,
    response_model_by_alias=True,
)
async def get_project_status(job_id: str) -> ProjectStatusReport:
    tasks = await asyncio.to_thread(task_store.list_tasks, job_id=job_id)
    if not tasks:
        raise HTTPException(status_code=404, detail="Project not found")
    return project_status(tasks)


@app.post("/v1/projects:status", response_model=ProjectStatusReport, response_model_by_alias=True)
async def compute_project_status(request: ProjectStatusRequest) -> ProjectStatusReport:
    return project_status(request.tasks)


@app.patch("/v1/projects/{job_id}/tasks", response_model=TaskRow, response_model_by_alias=True)
async def update_task_status(job_id: str, request: UpdateTaskStatusRequest) -> TaskRow:
    return await asyncio.to_thread(task_store.update_task_status, job_id, request.task, request.status)


@app.get("/v1/tasks/metrics", response_model=TaskMetrics, response_model_by_alias=True)
async def get_task_metrics() -> TaskMetrics:
    tasks = await asyncio.to_thread(task_store.list_tasks)
    return task_metrics(tasks)


@app.get("/health")
async def healthcheck() -> JSONResponse:
    return JSONResponse({"status": "ok"})

"""FastAPI application wiring for the workflow service.

Beginner terms used in this file:
- FastAPI app: the main web application object.
- Route/path operation: a function exposed over HTTP (for example, GET /workflows).
- response_model: Pydantic model used to validate/shape API responses.
- app.state: a place to store shared runtime objects (storage, executor).
- Lifespan: startup/shutdown hook; runtime objects are built there so importing
  this module never needs credentials.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .app.errors import WorkflowError, WorkflowNotFoundError
from .app.executor import ContentSource, TextGenerator, WorkflowExecutor
from .app.fetcher import ContentFetcher
from .app.llm import GenerationClient
from .app.models import (
    CreateWorkflowRequest,
    CreateWorkflowResponse,
    ExecuteWorkflowRequest,
    ExecuteWorkflowResponse,
    MessageResponse,
    UpdateWorkflowRequest,
    Workflow,
)
from .app.settings import Settings, configure_logging, get_settings
from .app.storage import SqliteWorkflowStorage, WorkflowStorage

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Welcome to the Workflow Management API. Use /workflows to interact with workflows."
)


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    storage_override: WorkflowStorage | None,
    fetcher_override: ContentSource | None,
    generator_override: TextGenerator | None,
) -> None:
    if hasattr(app.state, "executor"):
        return

    # Fail fast if the generation credential is missing.
    generator = generator_override
    if generator is None:
        api_key = settings.resolved_openai_api_key()
        if not api_key:
            raise RuntimeError(
                "OPENAI_API_KEY is required. Set OPENAI_API_KEY or "
                "WORKFLOW_API_OPENAI_API_KEY before starting the app."
            )
        generator = GenerationClient(
            api_key=api_key,
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
        )

    storage = storage_override or SqliteWorkflowStorage(settings.database_path)
    # Ensure schema exists before serving requests.
    storage.migrate()

    app.state.settings = settings
    app.state.storage = storage
    app.state.executor = WorkflowExecutor(
        storage=storage,
        fetcher=fetcher_override or ContentFetcher(timeout_s=settings.fetch_timeout_s),
        generator=generator,
    )
    logger.info(
        "app event=ready storage=%s default_model=%s",
        type(storage).__name__,
        settings.default_model,
    )


def create_app(
    *,
    storage: WorkflowStorage | None = None,
    fetcher: ContentSource | None = None,
    generator: TextGenerator | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    """Application factory.

    Injected collaborators replace the defaults (SQLite store, HTTP fetcher,
    OpenAI client), which keeps tests off the network and the disk.
    """
    settings = settings_override or get_settings()
    configure_logging(settings.log_level)

    def _ensure(app: FastAPI) -> None:
        _ensure_runtime_state(
            app,
            settings=settings,
            storage_override=storage,
            fetcher_override=fetcher,
            generator_override=generator,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure(app)
        yield

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Keep test paths reliable when lifespan is not executed by the client.
    if storage is not None:
        _ensure(app)

    def _get_storage(request: Request) -> WorkflowStorage:
        if not hasattr(request.app.state, "storage"):
            _ensure(request.app)
        return request.app.state.storage

    def _get_executor(request: Request) -> WorkflowExecutor:
        if not hasattr(request.app.state, "executor"):
            _ensure(request.app)
        return request.app.state.executor

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(_: Request, exc: WorkflowError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request event=failed error=%s cause=%r", exc.message, exc.__cause__)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info("request event=invalid_body errors=%s", exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body."})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("request event=unexpected_error", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/", response_class=PlainTextResponse)
    def home() -> str:
        return WELCOME_MESSAGE

    # Multiple health endpoints map to the same function for compatibility with
    # different probes/load balancers.
    @app.get("/health")
    @app.get("/healthz")
    @app.get("/live")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/workflows", response_model=list[Workflow])
    def list_workflows(request: Request) -> list[Workflow]:
        return _get_storage(request).list()

    @app.post("/workflows", response_model=CreateWorkflowResponse)
    def create_workflow(payload: CreateWorkflowRequest, request: Request) -> CreateWorkflowResponse:
        workflow = _get_storage(request).create(payload.name, payload.description, payload.url)
        logger.info("workflow event=created workflow_id=%s", workflow.id)
        return CreateWorkflowResponse(
            id=workflow.id,
            name=workflow.name,
            description=workflow.description,
            url=workflow.url,
        )

    @app.get("/workflows/{workflow_id}", response_model=Workflow)
    def get_workflow(workflow_id: str, request: Request) -> Workflow:
        workflow = _get_storage(request).get(_parse_workflow_id(workflow_id))
        if workflow is None:
            raise WorkflowNotFoundError()
        return workflow

    @app.put("/workflows/{workflow_id}", response_model=Workflow)
    def update_workflow(
        workflow_id: str, payload: UpdateWorkflowRequest, request: Request
    ) -> Workflow:
        updated = _get_storage(request).update(
            _parse_workflow_id(workflow_id),
            name=payload.name,
            description=payload.description,
            url=payload.url,
        )
        if updated is None:
            raise WorkflowNotFoundError()
        logger.info("workflow event=updated workflow_id=%s", updated.id)
        return updated

    @app.delete("/workflows/{workflow_id}", response_model=MessageResponse)
    def delete_workflow(workflow_id: str, request: Request) -> MessageResponse:
        if not _get_storage(request).delete(_parse_workflow_id(workflow_id)):
            raise WorkflowNotFoundError()
        logger.info("workflow event=deleted workflow_id=%s", workflow_id)
        return MessageResponse(message="Workflow deleted successfully")

    # Sync handler: FastAPI runs it on the worker thread pool, so executions
    # proceed in parallel without blocking the event loop.
    @app.post("/workflows/{workflow_id}/execute", response_model=ExecuteWorkflowResponse)
    def execute_workflow(
        workflow_id: str, payload: ExecuteWorkflowRequest, request: Request
    ) -> ExecuteWorkflowResponse:
        model_name = payload.model or settings.default_model
        result = _get_executor(request).execute(
            _parse_workflow_id(workflow_id),
            payload.prompt,
            model_name,
        )
        return ExecuteWorkflowResponse(result=result)

    return app


def _parse_workflow_id(raw_value: str) -> int:
    """Path ids that are not positive integers cannot name a workflow."""
    try:
        workflow_id = int(raw_value)
    except ValueError:
        raise WorkflowNotFoundError() from None
    if workflow_id <= 0:
        raise WorkflowNotFoundError()
    return workflow_id


def run() -> None:
    """Console entry point: serve the module-level app with uvicorn."""
    settings = get_settings()
    uvicorn.run("workflow_api.main:app", host=settings.host, port=settings.port)


# Module-level app for `uvicorn workflow_api.main:app`.
app = create_app()

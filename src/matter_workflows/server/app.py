"""FastAPI app factory.

Endpoints are thin wrappers over :class:`WorkflowService` and
:class:`WorkflowEngine`; engine errors are mapped to HTTP status codes here.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from matter_workflows import __version__
from matter_workflows.config import WorkflowSettings
from matter_workflows.engine.deadline import execute_with_deadline
from matter_workflows.engine.errors import (
    DefinitionNotFound,
    DispatchCrashed,
    DispatchError,
    InvalidWorkflowDefinition,
    PersistenceError,
)
from matter_workflows.engine.models import (
    ExecutionRecord,
    TriggerConfig,
    actions_from_json,
)
from matter_workflows.engine.triggers import TriggerEvent
from matter_workflows.server.models import (
    EventRequest,
    ExecuteRequest,
    ToggleRequest,
    WorkflowCreate,
    WorkflowUpdate,
)
from matter_workflows.wiring import Services, build_services

logger = logging.getLogger(__name__)


def _incomplete_dispatch(status_code: int, exc: DispatchError | DispatchCrashed) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "failedWorkflowIds": sorted(exc.errors),
            "executions": [
                r.model_dump(mode="json") for r in exc.executions if isinstance(r, ExecutionRecord)
            ],
        },
    )


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DefinitionNotFound)
    def _not_found(request: Request, exc: DefinitionNotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidWorkflowDefinition)
    def _invalid(request: Request, exc: InvalidWorkflowDefinition) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(DispatchError)
    def _dispatch_failed(request: Request, exc: DispatchError) -> JSONResponse:
        logger.error("Dispatch incomplete", extra={"failed": sorted(exc.errors)})
        return _incomplete_dispatch(503, exc)

    @app.exception_handler(DispatchCrashed)
    def _dispatch_crashed(request: Request, exc: DispatchCrashed) -> JSONResponse:
        logger.error("Dispatch crashed", extra={"failed": sorted(exc.errors)})
        return _incomplete_dispatch(500, exc)

    @app.exception_handler(PersistenceError)
    def _persistence(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Persistence failure", extra={"path": request.url.path, "error": str(exc)})
        return JSONResponse(status_code=503, content={"detail": str(exc)})


def create_app(
    settings: WorkflowSettings | None = None,
    *,
    services: Services | None = None,
) -> FastAPI:
    settings = settings or WorkflowSettings()
    services = services or build_services(settings)

    app = FastAPI(
        title="Matter Workflows",
        version=__version__,
        description="REST API for authoring and running workflow automations.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Expose settings and services for request handlers that want to read them.
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    workflows = services.workflows
    engine = services.engine

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/workflows")
    def list_workflows() -> list[dict[str, Any]]:
        counts = workflows.execution_counts()
        return [{**w.to_json(), "executionsCount": counts.get(w.id, 0)} for w in workflows.list()]

    # Registered before the {workflow_id} routes so "stats" is not read as an id.
    @app.get("/api/workflows/stats")
    def workflow_stats() -> dict[str, int]:
        return workflows.stats().to_json()

    @app.post("/api/workflows", status_code=201)
    def create_workflow(req: WorkflowCreate) -> dict[str, Any]:
        workflow = workflows.create(
            name=req.name,
            description=req.description,
            trigger=TriggerConfig.from_json(req.trigger),
            actions=actions_from_json(req.actions),
        )
        return workflow.to_json()

    @app.get("/api/workflows/{workflow_id}")
    def get_workflow(workflow_id: str) -> dict[str, Any]:
        return workflows.get(workflow_id).to_json()

    @app.patch("/api/workflows/{workflow_id}")
    def update_workflow(workflow_id: str, req: WorkflowUpdate) -> dict[str, Any]:
        workflow = workflows.update(
            workflow_id,
            name=req.name,
            description=req.description,
            is_active=req.is_active,
            trigger=TriggerConfig.from_json(req.trigger) if req.trigger is not None else None,
            actions=actions_from_json(req.actions) if req.actions is not None else None,
        )
        return workflow.to_json()

    @app.delete("/api/workflows/{workflow_id}", status_code=204)
    def delete_workflow(workflow_id: str) -> None:
        workflows.delete(workflow_id)

    @app.post("/api/workflows/{workflow_id}/toggle")
    def toggle_workflow(workflow_id: str, req: ToggleRequest) -> dict[str, Any]:
        return workflows.toggle(workflow_id, req.is_active).to_json()

    @app.post("/api/workflows/{workflow_id}/execute", response_model=ExecutionRecord)
    def execute_workflow(workflow_id: str, req: ExecuteRequest | None = None) -> ExecutionRecord:
        req = req or ExecuteRequest()
        return execute_with_deadline(
            engine,
            workflow_id,
            req.trigger_data,
            timeout_seconds=req.timeout_seconds,
        )

    @app.get("/api/workflows/{workflow_id}/executions", response_model=list[ExecutionRecord])
    def list_executions(
        workflow_id: str,
        limit: int = Query(default=50, ge=1, le=500),
    ) -> list[ExecutionRecord]:
        return workflows.executions(workflow_id, limit=limit)

    @app.post("/api/events", response_model=list[ExecutionRecord])
    def dispatch_event(req: EventRequest) -> list[ExecutionRecord]:
        return engine.dispatch(TriggerEvent(type=req.type, data=req.data, entity_type=req.entity_type))

    return app

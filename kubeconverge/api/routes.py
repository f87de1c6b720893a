"""Route handlers for the kubeconverge REST API."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from kubeconverge.api.schemas import ErrorResponse, EventResult, HealthResponse, ObjectEvent, PassList, PassSummary
from kubeconverge.errors import ReconcileError
from kubeconverge.models.spec import ObjectKey

router = APIRouter()
probes = APIRouter()


@probes.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    from kubeconverge import __version__

    return HealthResponse(status="ok", version=__version__)


@probes.get("/readyz", response_model=HealthResponse, responses={503: {"model": ErrorResponse}})
async def readyz(request: Request) -> HealthResponse | JSONResponse:
    """Ready once the controller has finished its first resync."""
    from kubeconverge import __version__

    controller = request.app.state.controller
    if controller is not None and not controller.is_ready():
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(error="NOT_READY", detail="initial resync has not completed").model_dump(),
        )
    return HealthResponse(status="ready", version=__version__)


@router.get("/passes", response_model=PassList)
async def list_passes(request: Request, limit: int = Query(default=20, ge=1, le=500)) -> PassList:
    """Most recent passes first."""
    history = request.app.state.reconciler.history
    recent = list(reversed(history))[:limit]
    return PassList(passes=[PassSummary.model_validate(r.to_dict()) for r in recent])


@router.post(
    "/reconcile/{namespace}/{name}",
    response_model=PassSummary,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def reconcile(request: Request, namespace: str, name: str) -> PassSummary | JSONResponse:
    """Run one pass for the specification now, after any pass already running."""
    key = ObjectKey(name=name, namespace=namespace)
    controller = request.app.state.controller
    try:
        if controller is not None:
            result = await controller.reconcile_now(key)
        else:
            result = await request.app.state.reconciler.reconcile(key)
    except ReconcileError as exc:
        return JSONResponse(
            status_code=503 if exc.retryable else 422,
            content=ErrorResponse(error="RECONCILE_FAILED", detail=str(exc)).model_dump(),
        )
    return PassSummary.model_validate(result.to_dict())


@router.post(
    "/events",
    response_model=EventResult,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def submit_event(request: Request, event: ObjectEvent) -> EventResult | JSONResponse:
    """Route a changed secondary object to its owning specification."""
    controller = request.app.state.controller
    if controller is None:
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(error="NO_CONTROLLER", detail="event intake is not running").model_dump(),
        )
    key = await controller.handle_event(event.object)
    if key is None:
        return EventResult(correlated=False)
    return EventResult(correlated=True, namespace=key.namespace, name=key.name)

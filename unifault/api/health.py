from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from unifault.api.capture import CapturingRoute
from unifault.api.correlation import request_trace_id
from unifault.core.errors import make_success_payload
from unifault.services.supervisor import SupervisorState


router = APIRouter(tags=["health"], route_class=CapturingRoute)


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    # Not ready once the supervisor has started shutting the process down.
    supervisor = getattr(request.app.state, "supervisor", None)
    if supervisor is not None and supervisor.state is SupervisorState.SHUTTING_DOWN:
        return JSONResponse(status_code=503, content={"status": "not_ready"})

    return JSONResponse(
        status_code=200,
        content=make_success_payload(
            {"status": "ready"}, trace_id=request_trace_id(request)
        ),
    )

"""Runtime metrics endpoint."""

from __future__ import annotations

from typing import Any, cast

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from corsaro.interfaces.app_state import AppState

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("")
async def stats(request: Request) -> JSONResponse:
    """Return in-memory runtime metrics.

    Includes per-provider search stats, debrid outcome counters and
    request status counters.
    """
    state = cast(AppState, request.app.state)

    data: dict[str, Any] = {}
    m = getattr(state, "metrics", None)
    if m is not None:
        data.update(m.snapshot())
    providers = getattr(state, "providers", None)
    if providers is not None:
        data["registered_providers"] = providers.names()

    return JSONResponse(content=data)

"""Relay status reporting."""
from __future__ import annotations

from fastapi import APIRouter, Request

from ..schemas.signaling import Role
from ..schemas.status import StatusResponse
from ..services.signaling import SignalingService

router = APIRouter()


@router.get("/status", response_model=StatusResponse)
async def status(request: Request) -> StatusResponse:
    """Report live registry counts."""

    service: SignalingService = request.app.state.signaling
    counts = await service.registry.counts()
    return StatusResponse(
        touchdesigner=counts[Role.PRODUCER] > 0,
        browsers=counts[Role.CONSUMER],
        total_clients=sum(counts.values()),
    )

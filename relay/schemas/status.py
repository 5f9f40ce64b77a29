"""Data contracts for the status endpoint."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class StatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["online"] = "online"
    touchdesigner: bool = Field(..., description="True when at least one producer is registered")
    browsers: int = Field(..., ge=0, description="Registered consumer count")
    total_clients: int = Field(..., ge=0, alias="totalClients", description="Registered connection count")

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ScrapeRequest(BaseModel):
    url: str | None = None


class HealthResponse(BaseModel):
    status: str  # always "ok"
    timestamp: datetime

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class DiagnosticStep(BaseModel):
    # Step details are flattened next to timestamp/step, as in the JSON trace.
    model_config = ConfigDict(extra="allow")

    timestamp: datetime
    step: str


class Diagnostics(BaseModel):
    """Append-only trace of the steps taken while scraping one URL."""

    session_id: str = Field(serialization_alias="sessionId")
    steps: list[DiagnosticStep] = []
    screenshots: list[str] = []

    @classmethod
    def start(cls) -> Diagnostics:
        return cls(session_id=str(time.time_ns() // 1_000_000))

    def add_step(self, step: str, **details: Any) -> DiagnosticStep:
        # Detail keys share the camelCase convention of the rest of the JSON trace.
        details = {to_camel(key): value for key, value in details.items()}
        entry = DiagnosticStep(
            timestamp=datetime.now(timezone.utc),
            step=step,
            **details,
        )
        self.steps.append(entry)
        logger.info("[%s] %s: %s", self.session_id, step, details)
        return entry

    def step_names(self) -> list[str]:
        return [s.step for s in self.steps]

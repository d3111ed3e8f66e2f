"""Request / response models shared across API route modules."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from auto_context.engine.models import ContextDecision
from auto_context.models import ContextTick


class EvaluateResponse(BaseModel):
    device_id: str
    decision: ContextDecision


class IngestResponse(BaseModel):
    queued: int
    pending: int


class TemplateRuleRequest(BaseModel):
    """Instantiate a rule template, optionally overriding top-level fields."""
    overrides: dict[str, Any] = Field(default_factory=dict)


class BatchIngestRequest(BaseModel):
    ticks: list[ContextTick] = Field(..., min_length=1)

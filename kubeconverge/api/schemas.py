"""Response models for the REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    detail: str = ""


class HealthResponse(BaseModel):
    status: str
    version: str


class ActionSummary(BaseModel):
    kind: str
    namespace: str
    name: str
    action: str
    changed_fields: list[str] = Field(default_factory=list)
    overrides: bool = False


class PassSummary(BaseModel):
    """One finished reconciliation pass."""

    namespace: str
    name: str
    started_at: str
    spec_found: bool
    error: str
    writes: int
    actions: list[ActionSummary] = Field(default_factory=list)


class PassList(BaseModel):
    passes: list[PassSummary]


class ObjectEvent(BaseModel):
    """A changed object, as delivered by an external watch."""

    object: dict[str, Any]


class EventResult(BaseModel):
    correlated: bool
    namespace: str = ""
    name: str = ""

"""Pydantic models shared across API, executor, and storage.

Beginner terms used in this file:
- Model: a typed schema class used for validation/serialization.
- Alias: the JSON field name used on the wire when it differs from the Python attribute.
- populate_by_name: lets code build models with snake_case names while JSON uses camelCase.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Workflow(BaseModel):
    """Canonical workflow record shape returned by API/storage."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(gt=0)
    name: str
    # Doubles as the "task" placed into execution prompts.
    description: str
    url: str
    created_at: datetime = Field(alias="createdAt")
    modified_at: datetime = Field(alias="modifiedAt")


class CreateWorkflowRequest(BaseModel):
    """Request body for POST /workflows.

    Fields are optional here so missing values reach the store and are
    reported as a 400 with a descriptive message instead of a schema error.
    """

    name: str | None = None
    description: str | None = None
    url: str | None = None


class CreateWorkflowResponse(BaseModel):
    """Response body for POST /workflows."""

    id: int
    name: str
    description: str
    url: str


class UpdateWorkflowRequest(BaseModel):
    """Request body for PUT /workflows/{id}; omitted or empty fields keep their value."""

    name: str | None = None
    description: str | None = None
    url: str | None = None


class ExecuteWorkflowRequest(BaseModel):
    """Request body for POST /workflows/{id}/execute."""

    prompt: str | None = None
    # None means "use the configured default model".
    model: str | None = None


class ExecuteWorkflowResponse(BaseModel):
    """Response body for POST /workflows/{id}/execute."""

    result: str


class MessageResponse(BaseModel):
    message: str

"""Error taxonomy for the workflow store and execution pipeline.

Every error carries the client-facing message and HTTP status it maps to.
Underlying causes are chained with ``raise ... from exc`` and logged, never
returned to clients.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for errors reported to API clients."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class WorkflowValidationError(WorkflowError):
    """Required input fields are missing or empty."""

    status_code = 400
    default_message = "Name, description, and URL are required."


class WorkflowNotFoundError(WorkflowError):
    status_code = 404
    default_message = "Workflow not found"


class FetchError(WorkflowError):
    """Remote content retrieval did not complete with a success status."""

    default_message = "Failed to fetch content from URL"


class EmptyContentError(WorkflowError):
    """The fetched document had no extractable text."""

    default_message = "No content found at the URL"


class GenerationError(WorkflowError):
    """The text-generation backend call failed for any reason."""

    default_message = "Failed to generate a result from the model"


class StorageError(WorkflowError):
    """The storage engine failed; message names the attempted operation."""

    default_message = "Error accessing workflow storage"

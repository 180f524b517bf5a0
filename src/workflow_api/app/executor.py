"""Workflow execution pipeline.

One execution walks a fixed stage chain::

    lookup -> fetch (incl. empty-content check) -> compose -> invoke

Any stage may end the run by raising a WorkflowError subclass; no stage is
retried, skipped, or reordered, and nothing partial is returned.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from .errors import WorkflowNotFoundError, WorkflowValidationError
from .models import Workflow
from .prompts import compose_prompt
from .storage import WorkflowStorage

logger = logging.getLogger(__name__)


class ContentSource(Protocol):
    def fetch(self, url: str) -> str: ...


class TextGenerator(Protocol):
    def invoke(self, model_name: str, prompt: str) -> str: ...


@dataclass
class ExecutionRun:
    """Per-call artifacts filled in stage by stage."""

    workflow_id: int
    prompt: str
    model: str
    workflow: Workflow | None = None
    content: str = ""
    composed_prompt: str = ""
    result: str = ""


class WorkflowExecutor:
    """Run a stored workflow against freshly fetched content.

    Holds only its collaborators, so concurrent ``execute`` calls, including
    for the same workflow, never share state.
    """

    def __init__(
        self,
        *,
        storage: WorkflowStorage,
        fetcher: ContentSource,
        generator: TextGenerator,
    ) -> None:
        self.storage = storage
        self.fetcher = fetcher
        self.generator = generator
        self.stages: tuple[tuple[str, Callable[[ExecutionRun], None]], ...] = (
            ("lookup", self._lookup),
            ("fetch", self._fetch),
            ("compose", self._compose),
            ("invoke", self._invoke),
        )

    def execute(self, workflow_id: int, prompt: str | None, model_name: str) -> str:
        if not prompt:
            raise WorkflowValidationError("Prompt is required.")

        run = ExecutionRun(workflow_id=workflow_id, prompt=prompt, model=model_name)
        started = time.perf_counter()
        for stage_name, stage in self.stages:
            try:
                stage(run)
            except Exception as exc:
                logger.info(
                    "workflow_run event=failed stage=%s workflow_id=%s model=%s error=%s",
                    stage_name,
                    workflow_id,
                    model_name,
                    type(exc).__name__,
                )
                raise
            logger.info(
                "workflow_run event=%s_done workflow_id=%s model=%s",
                stage_name,
                workflow_id,
                model_name,
            )

        logger.info(
            "workflow_run event=completed workflow_id=%s model=%s duration_ms=%d result_chars=%d",
            workflow_id,
            model_name,
            int((time.perf_counter() - started) * 1000),
            len(run.result),
        )
        return run.result

    def _lookup(self, run: ExecutionRun) -> None:
        workflow = self.storage.get(run.workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError()
        run.workflow = workflow

    def _fetch(self, run: ExecutionRun) -> None:
        # Raises FetchError or EmptyContentError; content is already truncated.
        run.content = self.fetcher.fetch(_looked_up(run).url)

    def _compose(self, run: ExecutionRun) -> None:
        run.composed_prompt = compose_prompt(
            task=_looked_up(run).description,
            user_prompt=run.prompt,
            content=run.content,
        )

    def _invoke(self, run: ExecutionRun) -> None:
        run.result = self.generator.invoke(run.model, run.composed_prompt)


def _looked_up(run: ExecutionRun) -> Workflow:
    """Workflow found by the lookup stage; later stages never run without one."""
    if run.workflow is None:
        raise WorkflowNotFoundError()
    return run.workflow

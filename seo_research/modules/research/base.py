"""Shared state machine for the research workflows."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional

from seo_research.errors import ProviderError
from seo_research.integrations.routes import TaskKind
from seo_research.models import Query, QueryType, Status
from seo_research.modules.orchestration.task_orchestrator import TaskOrchestrator
from seo_research.modules.summarization.job_queue import (
    FAILED as JOB_FAILED,
    SummarizationJobQueue,
    SummarizationRequest,
)
from seo_research.store import ResearchStore

logger = logging.getLogger(__name__)


@dataclass
class WorkflowSettings:
    """Wait budgets for one workflow, in seconds."""

    timeout_seconds: float = 600
    poll_interval_seconds: float = 10
    summary_timeout_seconds: float = 120
    summary_poll_interval_seconds: float = 2

    @classmethod
    def from_config(cls, config: Optional[dict[str, Any]], defaults: "WorkflowSettings") -> "WorkflowSettings":
        config = config or {}
        return cls(
            timeout_seconds=config.get("timeout_seconds", defaults.timeout_seconds),
            poll_interval_seconds=config.get("poll_interval_seconds", defaults.poll_interval_seconds),
            summary_timeout_seconds=config.get("summary_timeout_seconds", defaults.summary_timeout_seconds),
            summary_poll_interval_seconds=config.get(
                "summary_poll_interval_seconds", defaults.summary_poll_interval_seconds
            ),
        )


class ResearchWorkflow(ABC):
    """One research type: validates parameters and runs a query to a terminal state.

    ``run`` moves the query ``pending -> in_progress -> completed | failed``.
    Any exception inside ``_execute`` fails the query with the exception's
    message; datasets written before the failure are kept.
    """

    query_type: ClassVar[QueryType]
    name: ClassVar[str]
    total_steps: ClassVar[int]
    default_settings: ClassVar[WorkflowSettings] = WorkflowSettings()

    def __init__(
        self,
        store: ResearchStore,
        orchestrator: TaskOrchestrator,
        summaries: SummarizationJobQueue,
        settings: Optional[WorkflowSettings] = None,
        step_log: Optional[dict[str, Any]] = None,
    ):
        self._store = store
        self._orchestrator = orchestrator
        self._summaries = summaries
        self.settings = settings or self.default_settings
        self._step_log = step_log if step_log is not None else {}

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    @abstractmethod
    def parse_params(self, raw: dict[str, Any]) -> Any:
        """Typed parameters; raises ``ValidationError``."""

    def create_query(self, raw_params: dict[str, Any], owner_id: str) -> Query:
        params = self.parse_params(raw_params)
        return self._store.create_query(self.query_type, params.to_dict(), owner_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self, query_id: str) -> Query:
        """Run a pending query to completion or failure and return its final row."""
        query = self._store.get_query(query_id)
        if query is None:
            raise ValueError(f"Query {query_id!r} not found")

        try:
            params = self.parse_params(query.parameters)
            self._store.update_query(query_id, status=Status.IN_PROGRESS, progress=10)
            await self._execute(query, params)
            self._sync_tasks(query_id)
            self._log_step(query_id, self.total_steps, "Complete", "done")
            return self._store.update_query(query_id, status=Status.COMPLETED, progress=100)
        except asyncio.CancelledError:
            logger.warning("[%s] Query %s cancelled", self.name, query_id)
            self.mark_cancelled(query_id)
            raise
        except Exception as exc:
            logger.exception("[%s] Query %s failed: %s", self.name, query_id, exc)
            return self._fail(query_id, str(exc) or type(exc).__name__)

    def mark_cancelled(self, query_id: str) -> Query:
        """Fail a query whose run was cancelled, along with its unfinished tasks."""
        return self._fail(query_id, "cancelled")

    def _fail(self, query_id: str, error: str) -> Query:
        self._sync_tasks(query_id, failure=error)
        self._log_step(query_id, 0, error, "error")
        return self._store.update_query(query_id, status=Status.FAILED, error=error)

    @abstractmethod
    async def _execute(self, query: Query, params: Any) -> None:
        """Submit, wait, analyse, persist and summarise."""

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def _progress(self, query_id: str, progress: int) -> None:
        self._store.update_query(query_id, progress=progress)

    def _log_step(
        self,
        query_id: str,
        step: int,
        description: str,
        status: str = "running",
    ) -> None:
        """Log and record a workflow step transition."""
        msg = f"[{self.name}] Step {step}/{self.total_steps}: {description} - {status}"
        if status == "error":
            logger.error(msg)
        else:
            logger.info(msg)
        self._step_log[query_id] = {
            "workflow": self.name,
            "current_step": step,
            "total_steps": self.total_steps,
            "description": description,
            "status": status,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

    async def _submit(self, query_id: str, kind: TaskKind, request: dict[str, Any]) -> str:
        """Submit one provider task and record it under the query."""
        task_id = await self._orchestrator.submit(kind, request)
        record = self._orchestrator.get(task_id)
        self._store.create_task(
            task_id,
            query_id,
            kind.value,
            request,
            provider_task_id=record.provider_task_id,
            cost=record.cost,
        )
        return task_id

    async def _wait(self, query_id: str, task_ids: list[str]) -> dict[str, Any]:
        """Results for every id, or raise; task rows are updated either way."""
        try:
            return await self._orchestrator.wait_for_all(
                task_ids,
                timeout=self.settings.timeout_seconds,
                poll_interval=self.settings.poll_interval_seconds,
            )
        finally:
            self._sync_tasks(query_id)

    def _sync_tasks(self, query_id: str, failure: Optional[str] = None) -> None:
        """Copy ledger state onto task rows; with ``failure`` unfinished tasks are failed."""
        for row in self._store.list_tasks(query_id):
            task_id = row.id
            if Status(row.status).is_terminal:
                continue
            record = self._orchestrator.get(task_id)
            if record is None:
                if failure is not None:
                    self._store.update_task(task_id, status=Status.FAILED, error=failure)
                continue
            if record.status == Status.COMPLETED.value:
                self._store.update_task(task_id, status=Status.COMPLETED, result=record.result, cost=record.cost)
            elif record.status == Status.FAILED.value:
                self._store.update_task(task_id, status=Status.FAILED, error=record.error)
            elif failure is not None:
                self._store.update_task(task_id, status=Status.FAILED, error=failure)
            elif record.status != row.status:
                self._store.update_task(task_id, status=record.status)

    async def _summarize(
        self,
        query: Query,
        request: SummarizationRequest,
    ) -> None:
        """Run one summarization job and store its output as an insight.

        Raises:
            ProviderError: the job failed.
            WaitTimeoutError: the job did not finish in time.
        """
        job_id = self._summaries.enqueue(query.owner_id, request)
        jobs = await self._summaries.wait_for_all(
            [job_id],
            timeout=self.settings.summary_timeout_seconds,
            poll_interval=self.settings.summary_poll_interval_seconds,
        )
        job = jobs[job_id]
        if job.status == JOB_FAILED:
            raise ProviderError(f"Summarization job {job_id} failed: {job.error}")
        self._store.create_insight(
            query.id,
            request.analysis_type,
            job.output,
            job_id=job_id,
            template_id=request.template_id,
        )

"""Workflow engine: the entry point for starting research queries and reading their results."""

import asyncio
import logging
from typing import Any, Optional, Union

from seo_research.models import Query, QueryType, Status
from seo_research.modules.orchestration.task_orchestrator import TaskOrchestrator
from seo_research.modules.research import (
    CompetitorResearchWorkflow,
    KeywordDiscoveryWorkflow,
    ResearchWorkflow,
    SerpAnalysisWorkflow,
    WorkflowSettings,
)
from seo_research.modules.summarization.job_queue import SummarizationJobQueue
from seo_research.store import ResearchStore

logger = logging.getLogger(__name__)

WORKFLOW_CLASSES: dict[QueryType, type[ResearchWorkflow]] = {
    QueryType.KEYWORD_DISCOVERY: KeywordDiscoveryWorkflow,
    QueryType.SERP_ANALYSIS: SerpAnalysisWorkflow,
    QueryType.COMPETITOR_RESEARCH: CompetitorResearchWorkflow,
}


class WorkflowEngine:
    """Start research queries in the background and report on them.

    Each query type has one controller; all of them share the store, the
    task orchestrator, the summarization queue and one step log.

    Usage::

        engine = WorkflowEngine(store, orchestrator, summaries)
        query_id = await engine.start("keyword_discovery", {"seed_keywords": ["running shoes"]}, "user-1")
        status = engine.get_status(query_id)
    """

    def __init__(
        self,
        store: ResearchStore,
        orchestrator: TaskOrchestrator,
        summaries: SummarizationJobQueue,
        settings: Optional[dict[QueryType, WorkflowSettings]] = None,
    ) -> None:
        self._store = store
        self._pipeline_status: dict[str, Any] = {}
        self._running: dict[str, asyncio.Task] = {}
        settings = settings or {}
        self._controllers: dict[QueryType, ResearchWorkflow] = {
            query_type: cls(
                store,
                orchestrator,
                summaries,
                settings=settings.get(query_type),
                step_log=self._pipeline_status,
            )
            for query_type, cls in WORKFLOW_CLASSES.items()
        }
        logger.info("WorkflowEngine initialized.")

    def controller(self, query_type: Union[QueryType, str]) -> ResearchWorkflow:
        return self._controllers[QueryType(query_type)]

    # ------------------------------------------------------------------
    # Starting queries
    # ------------------------------------------------------------------

    async def start(self, query_type: Union[QueryType, str], params: dict[str, Any], owner_id: str) -> str:
        """Validate ``params``, create the query and run it in the background.

        Raises:
            ValidationError: bad parameters; no query is created.
        """
        controller = self.controller(query_type)
        query = controller.create_query(params, owner_id)
        task = asyncio.get_running_loop().create_task(controller.run(query.id))
        self._running[query.id] = task
        task.add_done_callback(lambda _: self._running.pop(query.id, None))
        logger.info("Started %s query %s", query.type, query.id)
        return query.id

    async def run(self, query_type: Union[QueryType, str], params: dict[str, Any], owner_id: str) -> dict[str, Any]:
        """Create a query, run it to a terminal state and return its result."""
        controller = self.controller(query_type)
        query = controller.create_query(params, owner_id)
        await controller.run(query.id)
        return self.get_result(query.id)

    async def wait(self, query_id: str) -> Optional[dict[str, Any]]:
        """Wait for a background query started with :meth:`start`, then return its status."""
        task = self._running.get(query_id)
        if task is not None:
            await task
        return self.get_status(query_id)

    async def shutdown(self) -> None:
        """Cancel queries still running in the background and mark them failed."""
        running = list(self._running.items())
        for _, task in running:
            task.cancel()
        if running:
            await asyncio.gather(*(task for _, task in running), return_exceptions=True)
        self._running.clear()

        # A task cancelled before its first step never reaches the workflow's own handler.
        for query_id, _ in running:
            query = self._store.get_query(query_id)
            if query is not None and not Status(query.status).is_terminal:
                self.controller(query.type).mark_cancelled(query_id)

    # ------------------------------------------------------------------
    # Reading queries
    # ------------------------------------------------------------------

    def _owned_query(self, query_id: str, owner_id: Optional[str]) -> Optional[Query]:
        query = self._store.get_query(query_id)
        if query is None or (owner_id is not None and query.owner_id != owner_id):
            return None
        return query

    def get_status(self, query_id: str, owner_id: Optional[str] = None) -> Optional[dict[str, Any]]:
        """Status, progress and error of a query plus the status of each task."""
        query = self._owned_query(query_id, owner_id)
        if query is None:
            return None
        return {
            **query.to_dict(),
            "tasks": [{"id": t.id, "kind": t.kind, "status": t.status} for t in query.tasks],
            "step": self._pipeline_status.get(query_id),
        }

    def get_result(self, query_id: str, owner_id: Optional[str] = None) -> Optional[dict[str, Any]]:
        """Everything recorded for a query: tasks, datasets and insights."""
        query = self._owned_query(query_id, owner_id)
        if query is None:
            return None
        return {
            "query": query.to_dict(),
            "tasks": [task.to_dict() for task in query.tasks],
            "datasets": [dataset.to_dict() for dataset in query.datasets],
            "insights": [insight.to_dict() for insight in query.insights],
        }

    def list_queries(self, owner_id: Optional[str] = None, limit: int = 50) -> list[dict[str, Any]]:
        return [query.to_dict() for query in self._store.list_queries(owner_id, limit)]

    def get_pipeline_status(self) -> dict[str, Any]:
        """Latest step of every query this engine has run."""
        return dict(self._pipeline_status)

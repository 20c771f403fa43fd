"""Registry of provider tasks: rate-limited submission, kind-routed polling, waiting."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from seo_research.errors import ProviderError, RateLimitError, ValidationError
from seo_research.integrations.routes import EndpointRoute, TaskKind
from seo_research.integrations.task_client import TaskClient
from seo_research.modules.orchestration.ledger import AsyncJobLedger, LedgerEntry, _utcnow
from seo_research.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
FAILED = "failed"


@dataclass
class TaskRecord(LedgerEntry):
    """One submitted provider task."""

    kind: TaskKind = TaskKind.SERP_ORGANIC
    provider_task_id: str = ""
    cost: float = 0.0
    payload: list[dict[str, Any]] = field(default_factory=list)
    result: Optional[list[Any]] = None


class TaskOrchestrator(AsyncJobLedger[TaskRecord]):
    """Submits provider tasks and tracks them until they resolve.

    Every task kind maps to exactly one :class:`EndpointRoute`; the kind
    recorded at submission decides which endpoint is polled for the result.

    Usage::

        orchestrator = TaskOrchestrator(client, limiter, [SerpAdapter(), KeywordsAdapter(), LabsAdapter()])
        task_id = await orchestrator.submit(TaskKind.SERP_ORGANIC, {"keywords": ["running shoes"]})
        results = await orchestrator.wait_for_all([task_id], timeout=600, poll_interval=10)
    """

    def __init__(
        self,
        client: TaskClient,
        rate_limiter: RateLimiter,
        adapters: Iterable[Any],
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__("TaskOrchestrator", clock=clock)
        self._client = client
        self._rate_limiter = rate_limiter
        self._routes: dict[TaskKind, EndpointRoute] = {}
        for adapter in adapters:
            for kind, route in adapter.routes().items():
                if kind in self._routes:
                    raise ValueError(f"Task kind {kind.value!r} is routed by more than one adapter")
                self._routes[kind] = route
        missing = [kind.value for kind in TaskKind if kind not in self._routes]
        if missing:
            raise ValueError(f"No adapter route for task kinds: {', '.join(missing)}")

    @property
    def client(self) -> TaskClient:
        return self._client

    def route(self, kind: TaskKind) -> EndpointRoute:
        return self._routes[kind]

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, kind: TaskKind, request: dict[str, Any]) -> str:
        """Post one task and return its internal id.

        Raises:
            ValidationError: unknown kind or a request that builds no payload.
            RateLimitError: the limiter denied the call; nothing was sent.
            ProviderError: the provider refused the task.
        """
        try:
            kind = TaskKind(kind)
        except ValueError as exc:
            raise ValidationError(f"Unknown task kind: {kind!r}") from exc
        route = self._routes[kind]
        try:
            payload = route.build_payload(request)
        except KeyError as exc:
            raise ValidationError(f"{kind.value} request missing field {exc.args[0]!r}") from exc
        if not payload:
            raise ValidationError(f"{kind.value} request produced an empty payload")

        if not self._rate_limiter.try_acquire():
            raise RateLimitError(self._rate_limiter.name, self._rate_limiter.status())

        response = await self._client.submit(route.post_endpoint, payload)
        task = response.first_task
        if task is None or not task.id:
            raise ProviderError(
                f"Provider returned no task for {kind.value}",
                status_code=response.status_code,
                status_message=response.status_message,
            )
        if self._client.is_error(task):
            raise ProviderError(
                f"Provider rejected {kind.value} task: {task.status_message}",
                status_code=task.status_code,
                status_message=task.status_message,
            )

        record = self._register(TaskRecord(
            id=uuid.uuid4().hex,
            status=PENDING,
            created_at=self._clock(),
            kind=kind,
            provider_task_id=task.id,
            cost=task.cost,
            payload=payload,
        ))
        logger.info(
            "Submitted %s task %s (provider id %s, cost %.4f)",
            kind.value, record.id, task.id, task.cost,
        )
        return record.id

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def _refresh(self, record: TaskRecord) -> None:
        route = self._routes[record.kind]
        response = await self._client.fetch(route.get_endpoint, record.provider_task_id)
        task = response.first_task
        # Another caller may have finished the record while this fetch was in flight.
        if task is None or self.is_terminal(record):
            return
        if self._client.is_complete(task):
            record.result = task.result or []
            record.cost = max(record.cost, task.cost)
            self._mark_terminal(record, COMPLETED)
            logger.info("Task %s (%s) completed", record.id, record.kind.value)
        elif self._client.is_error(task):
            self._mark_terminal(record, FAILED, f"{task.status_code} {task.status_message}".strip())
            logger.warning("Task %s (%s) failed: %s", record.id, record.kind.value, record.error)
        else:
            record.status = IN_PROGRESS

    async def result(self, task_id: str) -> Optional[list[Any]]:
        """Cached result once completed; otherwise one fetch from the provider.

        Returns ``None`` while the task is still pending.

        Raises:
            EntryNotFoundError: unknown ``task_id``.
            ProviderError: the task failed at the provider.
        """
        record = self._require(task_id)
        if record.status not in self.terminal_statuses:
            await self._refresh(record)
        if record.status == FAILED:
            raise ProviderError(
                f"{record.kind.value} task {task_id} failed: {record.error}",
                status_message=record.error or "",
            )
        if record.status == COMPLETED:
            return record.result
        return None

    async def _resolve(self, entry_id: str) -> tuple[bool, Any]:
        result = await self.result(entry_id)
        return self._entries[entry_id].status == COMPLETED, result

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def sweep(self) -> int:
        """Advance every outstanding task once; returns how many reached a terminal state."""
        outstanding = [r for r in self._entries.values() if not self.is_terminal(r)]
        finished = 0
        for record in outstanding:
            try:
                await self._refresh(record)
            except ProviderError as exc:
                logger.debug("Sweep could not refresh task %s: %s", record.id, exc)
                continue
            if self.is_terminal(record):
                finished += 1
        if outstanding:
            logger.debug("Sweep checked %d tasks, %d finished", len(outstanding), finished)
        return finished

    def stats(self) -> dict[str, Any]:
        stats = super().stats()
        stats["total_cost"] = round(sum(r.cost for r in self._entries.values()), 4)
        stats["rate_limit"] = self._rate_limiter.status()
        return stats

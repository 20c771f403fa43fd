"""Async queue of summarization jobs fronting the LLM backend."""

import asyncio
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from seo_research.errors import ValidationError
from seo_research.modules.orchestration.ledger import AsyncJobLedger, LedgerEntry, _utcnow
from seo_research.modules.summarization.templates import (
    ANALYSIS_TYPES,
    PromptTemplateEngine,
    build_analysis_prompt,
    preference_lines,
    system_prompt_for,
)

logger = logging.getLogger(__name__)

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

PRIORITIES = ("high", "medium", "low")
EFFORTS = ("quick", "moderate", "significant")
IMPACTS = ("high", "medium", "low")


class SummarizationBackend(Protocol):
    async def generate_json(self, prompt: str, system_prompt: str = ...) -> Any: ...


@dataclass
class SummarizationRequest:
    """What to summarise and how.

    With ``template_id`` the ``variables`` fill the template; otherwise
    ``variables`` is passed whole as the data block of a generic prompt.
    """

    analysis_type: str
    variables: dict[str, Any] = field(default_factory=dict)
    template_id: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class SummarizationJob(LedgerEntry):
    """One call to the summarization backend."""

    owner_id: str = ""
    input: dict[str, Any] = field(default_factory=dict)
    prompt: str = ""
    output: Optional[dict[str, Any]] = None


def parse_insight_response(raw: Any) -> dict[str, Any]:
    """Validate the backend's JSON reply and normalise its keys.

    Raises:
        ValueError: a required key is missing or has the wrong shape.
    """
    if not isinstance(raw, dict):
        raise ValueError("Summarization response is not a JSON object")
    summary = raw.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise ValueError("Summarization response has no 'summary' string")
    insights = raw.get("insights")
    if not isinstance(insights, list) or not all(isinstance(i, str) for i in insights):
        raise ValueError("Summarization response 'insights' must be a list of strings")
    recommendations = raw.get("recommendations")
    if not isinstance(recommendations, list):
        raise ValueError("Summarization response 'recommendations' must be a list")

    cleaned = []
    for index, rec in enumerate(recommendations):
        if not isinstance(rec, dict):
            raise ValueError(f"Recommendation {index} is not an object")
        for key in ("title", "description"):
            if not isinstance(rec.get(key), str):
                raise ValueError(f"Recommendation {index} has no {key!r}")
        for key, allowed in (("priority", PRIORITIES), ("effort", EFFORTS), ("impact", IMPACTS)):
            value = str(rec.get(key, "")).lower()
            if value not in allowed:
                raise ValueError(f"Recommendation {index} {key}={rec.get(key)!r} not in {allowed}")
        cleaned.append({
            "title": rec["title"],
            "description": rec["description"],
            "priority": str(rec["priority"]).lower(),
            "effort": str(rec["effort"]).lower(),
            "impact": str(rec["impact"]).lower(),
        })

    return {
        "summary": summary,
        "insights": insights,
        "recommendations": cleaned,
        "key_metrics": raw.get("keyMetrics") or raw.get("key_metrics") or [],
        "next_steps": raw.get("nextSteps") or raw.get("next_steps") or [],
    }


class SummarizationJobQueue(AsyncJobLedger[SummarizationJob]):
    """Runs summarization jobs in the background and tracks their state.

    Prompts are rendered at enqueue time so a bad template or missing
    variable surfaces to the caller as :class:`ValidationError` before the
    backend is touched.

    Usage::

        queue = SummarizationJobQueue(llm_client)
        job_id = queue.enqueue("query-1", SummarizationRequest(
            analysis_type="keyword_analysis",
            template_id="keyword_opportunity_analysis",
            variables={...},
        ))
        jobs = await queue.wait_for_all([job_id], timeout=120, poll_interval=2)
    """

    def __init__(
        self,
        backend: SummarizationBackend,
        templates: Optional[PromptTemplateEngine] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__("SummarizationJobQueue", clock=clock)
        self._backend = backend
        self._templates = templates or PromptTemplateEngine()
        self._running: set[asyncio.Task] = set()

    @property
    def templates(self) -> PromptTemplateEngine:
        return self._templates

    def _build_prompt(self, request: SummarizationRequest) -> str:
        if request.analysis_type not in ANALYSIS_TYPES:
            raise ValidationError(f"Unknown analysis type: {request.analysis_type!r}")
        if request.template_id:
            rendered = self._templates.render(request.template_id, request.variables)
            extra = preference_lines(request.context, request.options)
            return "\n\n".join([rendered, "\n".join(extra).rstrip()]) if extra else rendered
        return build_analysis_prompt(
            request.analysis_type, request.variables, request.context, request.options
        )

    def enqueue(self, owner_id: str, request: SummarizationRequest) -> str:
        """Register a job and start processing it; must be called inside a running loop."""
        prompt = self._build_prompt(request)
        job = self._register(SummarizationJob(
            id=f"ai_{uuid.uuid4().hex[:16]}",
            status=PENDING,
            created_at=self._clock(),
            owner_id=owner_id,
            input=asdict(request),
            prompt=prompt,
        ))
        task = asyncio.get_running_loop().create_task(
            self._process(job.id, system_prompt_for(request.analysis_type))
        )
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        logger.info("Enqueued summarization job %s for %s", job.id, owner_id)
        return job.id

    async def _process(self, job_id: str, system_prompt: str) -> None:
        job = self._entries.get(job_id)
        if job is None:
            return
        job.status = PROCESSING
        try:
            raw = await self._backend.generate_json(job.prompt, system_prompt=system_prompt)
            job.output = parse_insight_response(raw)
        except asyncio.CancelledError:
            self._mark_terminal(job, FAILED, "cancelled")
            raise
        except Exception as exc:
            logger.warning("Summarization job %s failed: %s", job_id, exc)
            self._mark_terminal(job, FAILED, str(exc) or type(exc).__name__)
            return
        self._mark_terminal(job, COMPLETED)
        logger.info("Summarization job %s completed", job_id)

    async def _resolve(self, entry_id: str) -> tuple[bool, Any]:
        job = self._require(entry_id)
        return self.is_terminal(job), job

    def get_for_owner(self, job_id: str, owner_id: str) -> Optional[SummarizationJob]:
        """The job if it exists and belongs to ``owner_id``."""
        job = self._entries.get(job_id)
        if job is None or job.owner_id != owner_id:
            return None
        return job

    def owner_jobs(self, owner_id: str) -> list[SummarizationJob]:
        """All jobs for ``owner_id``, newest first."""
        jobs = [job for job in self._entries.values() if job.owner_id == owner_id]
        return sorted(jobs, key=lambda job: job.created_at, reverse=True)

    async def close(self) -> None:
        """Cancel jobs still running."""
        for task in list(self._running):
            task.cancel()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

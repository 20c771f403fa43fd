"""Shared pytest fixtures for the SEO research orchestrator tests."""

import json
import sys
from pathlib import Path
from typing import Any, Callable, Union
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

# Ensure project root is on sys.path so 'seo_research' is importable.
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)


VALID_INSIGHT = {
    "summary": "Mock summary of the research data.",
    "insights": ["Volume is concentrated in commercial keywords."],
    "recommendations": [
        {
            "title": "Target buyer keywords",
            "description": "Create comparison pages for the top commercial terms.",
            "priority": "high",
            "effort": "moderate",
            "impact": "high",
        }
    ],
    "keyMetrics": [{"metric": "Keywords", "value": "2", "trend": "up", "context": "After filters"}],
    "nextSteps": ["Brief the content team."],
}


class FakeProvider:
    """Scripted task API behind ``httpx.MockTransport``.

    ``task_post`` creates a task that answers ``task_get`` with 20100 for
    ``pending_polls`` fetches and 20000 plus the configured result after
    that. Results are keyed by endpoint base; a callable receives the
    posted task payload.
    """

    def __init__(self, pending_polls: int = 1):
        self.pending_polls = pending_polls
        self.results: dict[str, Union[list[Any], Callable[[dict[str, Any]], list[Any]]]] = {}
        self.failures: dict[str, tuple[int, str]] = {}
        self.tasks: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.cost = 0.0025

    @staticmethod
    def envelope(tasks: list[dict[str, Any]], status_code: int = 20000) -> dict[str, Any]:
        return {
            "status_code": status_code,
            "status_message": "Ok." if status_code == 20000 else "Error.",
            "cost": sum(task.get("cost", 0) for task in tasks),
            "tasks": tasks,
        }

    def requests_to(self, fragment: str) -> list[httpx.Request]:
        return [request for request in self.requests if fragment in request.url.path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/task_post"):
            base = path[: -len("/task_post")]
            payload = json.loads(request.content)
            task_id = f"prov-{len(self.tasks) + 1:04d}"
            self.tasks[task_id] = {"base": base, "payload": payload[0], "polls": 0}
            return httpx.Response(200, json=self.envelope([{
                "id": task_id,
                "status_code": 20100,
                "status_message": "Task Created.",
                "cost": self.cost,
                "result": None,
            }]))

        if "/task_get" in path:
            base = path.partition("/task_get")[0]
            task_id = path.rsplit("/", 1)[-1]
            task = self.tasks[task_id]
            task["polls"] += 1
            entry = {"id": task_id, "cost": self.cost, "result": None}
            if base in self.failures:
                code, message = self.failures[base]
                entry.update(status_code=code, status_message=message)
            elif task["polls"] <= self.pending_polls:
                entry.update(status_code=20100, status_message="Task In Queue.")
            else:
                result = self.results.get(base, [])
                if callable(result):
                    result = result(task["payload"])
                entry.update(status_code=20000, status_message="Ok.", result=result)
            return httpx.Response(200, json=self.envelope([entry]))

        if path == "/v3/user_data/info":
            return httpx.Response(200, json=self.envelope([{
                "id": "user",
                "status_code": 20000,
                "status_message": "Ok.",
                "result": [{"login": "test", "money": {"balance": 42.0}}],
            }]))

        return httpx.Response(404, text="not found")


@pytest.fixture(autouse=True)
def _reset_db_engine():
    """Autouse fixture: reset the global DB engine before and after every test.

    This prevents cross-test pollution when tests create their own in-memory
    databases.
    """
    from seo_research.database import reset_engine
    reset_engine()
    yield
    reset_engine()


@pytest.fixture()
def test_db():
    """Provide an in-memory SQLite database with all tables created.

    Yields a database URL string. The engine is automatically torn down
    after the test by the autouse ``_reset_db_engine`` fixture.
    """
    from seo_research.database import reset_engine, init_db
    reset_engine()
    db_url = "sqlite:///:memory:"
    init_db(database_url=db_url, echo=False)
    yield db_url


@pytest.fixture()
def mock_llm_client():
    """Return a mock LLMClient whose JSON replies are valid insights."""
    client = MagicMock()
    client.generate_text = AsyncMock(return_value="Mock LLM response text.")
    client.generate_json = AsyncMock(return_value=json.loads(json.dumps(VALID_INSIGHT)))
    client.get_usage_summary = MagicMock(return_value={
        "total_requests": 0,
        "total_cost_usd": 0.0,
    })
    return client


@pytest.fixture()
def fake_provider():
    return FakeProvider()


@pytest.fixture()
def task_client(fake_provider):
    from seo_research.integrations.task_client import TaskClient
    return TaskClient(
        login="test",
        password="secret",
        transport=httpx.MockTransport(fake_provider.handler),
    )


@pytest.fixture()
def rate_limiter():
    from seo_research.utils.rate_limiter import RateLimiter
    return RateLimiter(requests_per_minute=100, requests_per_hour=1000, name="test")


@pytest.fixture()
def orchestrator(task_client, rate_limiter):
    from seo_research.integrations.keywords_api import KeywordsAdapter
    from seo_research.integrations.labs_api import LabsAdapter
    from seo_research.integrations.serp_api import SerpAdapter
    from seo_research.modules.orchestration.task_orchestrator import TaskOrchestrator
    return TaskOrchestrator(task_client, rate_limiter, [SerpAdapter(), KeywordsAdapter(), LabsAdapter()])


@pytest.fixture()
def fast_settings():
    """Workflow wait budgets small enough for tests."""
    from seo_research.modules.research.base import WorkflowSettings
    return WorkflowSettings(
        timeout_seconds=5,
        poll_interval_seconds=0.01,
        summary_timeout_seconds=5,
        summary_poll_interval_seconds=0.01,
    )

"""Tests for the summarization job queue and insight parsing."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from seo_research.errors import ValidationError
from seo_research.modules.summarization.job_queue import (
    SummarizationJobQueue,
    SummarizationRequest,
    parse_insight_response,
)

VALID_INSIGHT = {
    "summary": "Demand for trail shoes peaks in spring.",
    "insights": ["Searches double between March and May."],
    "recommendations": [{
        "title": "Publish spring buying guide",
        "description": "Release the guide in February ahead of the peak.",
        "priority": "high",
        "effort": "moderate",
        "impact": "high",
    }],
    "keyMetrics": [{"metric": "Keywords", "value": "12", "trend": "up", "context": "Seasonal set"}],
    "nextSteps": ["Brief the content team."],
}


def _seasonal_request(**overrides):
    fields = {
        "analysis_type": "trend_analysis",
        "template_id": "seasonal_trend_analysis",
        "variables": {"industry": "running gear", "seasonal_trends": []},
    }
    fields.update(overrides)
    return SummarizationRequest(**fields)


# ===========================================================================
# Insight parsing
# ===========================================================================
class TestParseInsightResponse:

    def test_normalises_keys(self):
        parsed = parse_insight_response(VALID_INSIGHT)
        assert parsed["summary"] == VALID_INSIGHT["summary"]
        assert parsed["key_metrics"] == VALID_INSIGHT["keyMetrics"]
        assert parsed["next_steps"] == ["Brief the content team."]
        assert "keyMetrics" not in parsed

    def test_enum_values_lower_cased(self):
        raw = dict(VALID_INSIGHT, recommendations=[{
            "title": "t", "description": "d", "priority": "HIGH", "effort": "Quick", "impact": "low",
        }])
        rec = parse_insight_response(raw)["recommendations"][0]
        assert (rec["priority"], rec["effort"], rec["impact"]) == ("high", "quick", "low")

    def test_optional_sections_default_empty(self):
        parsed = parse_insight_response({"summary": "s", "insights": [], "recommendations": []})
        assert parsed["key_metrics"] == []
        assert parsed["next_steps"] == []

    @pytest.mark.parametrize("raw", [
        "plain text",
        {"insights": [], "recommendations": []},
        {"summary": "  ", "insights": [], "recommendations": []},
        {"summary": "s", "insights": "one insight", "recommendations": []},
        {"summary": "s", "insights": [], "recommendations": {}},
        {"summary": "s", "insights": [], "recommendations": [{"title": "t"}]},
        {"summary": "s", "insights": [], "recommendations": [
            {"title": "t", "description": "d", "priority": "urgent", "effort": "quick", "impact": "high"},
        ]},
    ])
    def test_invalid_replies(self, raw):
        with pytest.raises(ValueError):
            parse_insight_response(raw)


# ===========================================================================
# Queue
# ===========================================================================
class TestJobQueue:

    @pytest.mark.asyncio
    async def test_job_completes(self, mock_llm_client):
        queue = SummarizationJobQueue(mock_llm_client)
        job_id = queue.enqueue("query-1", _seasonal_request())

        assert job_id.startswith("ai_") and len(job_id) == 19
        jobs = await queue.wait_for_all([job_id], timeout=5, poll_interval=0.01)

        job = jobs[job_id]
        assert job.status == "completed"
        assert job.output["key_metrics"][0]["metric"] == "Keywords"
        assert job.completed_at is not None

        prompt, = mock_llm_client.generate_json.call_args.args
        assert "running gear" in prompt
        assert "seasonal patterns" in mock_llm_client.generate_json.call_args.kwargs["system_prompt"]

    @pytest.mark.asyncio
    async def test_context_appended_to_template_prompt(self, mock_llm_client):
        queue = SummarizationJobQueue(mock_llm_client)
        job_id = queue.enqueue("query-1", _seasonal_request(context={"industry": "retail"}))
        assert queue.get(job_id).prompt.endswith("Context:\n- Industry: retail")
        await queue.wait_for_all([job_id], timeout=5, poll_interval=0.01)

    @pytest.mark.asyncio
    async def test_generic_prompt_without_template(self, mock_llm_client):
        queue = SummarizationJobQueue(mock_llm_client)
        job_id = queue.enqueue("query-1", SummarizationRequest(
            analysis_type="keyword_analysis", variables={"keywords": ["a"]},
        ))
        assert queue.get(job_id).prompt.startswith("Please analyse the following keyword analysis data:")
        await queue.wait_for_all([job_id], timeout=5, poll_interval=0.01)

    @pytest.mark.asyncio
    async def test_malformed_reply_fails_job(self, mock_llm_client):
        mock_llm_client.generate_json = AsyncMock(return_value={"summary": "only a summary"})
        queue = SummarizationJobQueue(mock_llm_client)
        job_id = queue.enqueue("query-1", _seasonal_request())

        job = (await queue.wait_for_all([job_id], timeout=5, poll_interval=0.01))[job_id]
        assert job.status == "failed"
        assert "insights" in job.error
        assert job.output is None

    @pytest.mark.asyncio
    async def test_backend_error_fails_job(self, mock_llm_client):
        mock_llm_client.generate_json = AsyncMock(side_effect=RuntimeError("quota exhausted"))
        queue = SummarizationJobQueue(mock_llm_client)
        job_id = queue.enqueue("query-1", _seasonal_request())

        job = (await queue.wait_for_all([job_id], timeout=5, poll_interval=0.01))[job_id]
        assert job.status == "failed"
        assert job.error == "quota exhausted"

    @pytest.mark.asyncio
    async def test_unknown_analysis_type(self, mock_llm_client):
        queue = SummarizationJobQueue(mock_llm_client)
        with pytest.raises(ValidationError, match="Unknown analysis type"):
            queue.enqueue("query-1", _seasonal_request(analysis_type="sentiment_analysis"))
        assert len(queue) == 0
        mock_llm_client.generate_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_variables(self, mock_llm_client):
        queue = SummarizationJobQueue(mock_llm_client)
        with pytest.raises(ValidationError) as exc_info:
            queue.enqueue("query-1", _seasonal_request(variables={"industry": "x"}))
        assert exc_info.value.missing == ["seasonal_trends"]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_owner_scoping(self, mock_llm_client):
        queue = SummarizationJobQueue(mock_llm_client)
        first = queue.enqueue("query-1", _seasonal_request())
        second = queue.enqueue("query-1", _seasonal_request())
        other = queue.enqueue("query-2", _seasonal_request())
        await queue.wait_for_all([first, second, other], timeout=5, poll_interval=0.01)

        assert {job.id for job in queue.owner_jobs("query-1")} == {first, second}
        assert queue.get_for_owner(other, "query-1") is None
        assert queue.get_for_owner(other, "query-2").id == other
        assert queue.get_for_owner("ai_missing", "query-1") is None

    @pytest.mark.asyncio
    async def test_close_cancels_running_jobs(self):
        started = asyncio.Event()

        async def slow_reply(prompt, system_prompt=""):
            started.set()
            await asyncio.sleep(60)

        backend = MagicMock()
        backend.generate_json = slow_reply
        queue = SummarizationJobQueue(backend)
        job_id = queue.enqueue("query-1", _seasonal_request())
        await started.wait()

        await queue.close()
        assert queue.get(job_id).status == "failed"
        assert queue.get(job_id).error == "cancelled"

    @pytest.mark.asyncio
    async def test_evict_completed(self, mock_llm_client):
        now = {"value": datetime(2026, 1, 1, tzinfo=timezone.utc)}
        queue = SummarizationJobQueue(mock_llm_client, clock=lambda: now["value"])
        job_id = queue.enqueue("query-1", _seasonal_request())
        await queue.wait_for_all([job_id], timeout=5, poll_interval=0.01)

        now["value"] += timedelta(hours=47)
        assert queue.evict_completed(timedelta(hours=48)) == 0
        now["value"] += timedelta(hours=2)
        assert queue.evict_completed(timedelta(hours=48)) == 1
        assert queue.get(job_id) is None

"""Keyword discovery: expand seed keywords, filter, score and summarise."""

import logging
from typing import Any, Optional

from seo_research.integrations.keywords_api import KeywordsAdapter, competition_level
from seo_research.integrations.routes import TaskKind
from seo_research.models import Query, QueryType
from seo_research.modules.analysis.scoring import (
    annotate_keyword,
    is_long_tail_keyword,
    is_question_keyword,
)
from seo_research.modules.analysis.seasonality import analyze_seasonality, ordered_monthly_volumes
from seo_research.modules.research.base import ResearchWorkflow, WorkflowSettings
from seo_research.modules.research.params import KeywordDiscoveryParams
from seo_research.modules.summarization.job_queue import SummarizationRequest

logger = logging.getLogger(__name__)

# Keywords passed to the summarization prompt, best opportunity first.
SUMMARY_KEYWORD_LIMIT = 100


def normalize_keyword(raw: dict[str, Any], is_seed: bool = False) -> dict[str, Any]:
    """Flatten a provider keyword record into the dataset shape."""
    info = raw.get("keyword_info") or {}
    difficulty = raw.get("keyword_difficulty", (raw.get("keyword_properties") or {}).get("keyword_difficulty"))
    return {
        "keyword": raw["keyword"],
        "search_volume": int(raw.get("search_volume", info.get("search_volume")) or 0),
        "cpc": float(raw.get("cpc", info.get("cpc")) or 0.0),
        "competition": raw.get("competition", info.get("competition")) or 0,
        "competition_level": competition_level({**info, **raw}),
        "keyword_difficulty": difficulty,
        "categories": raw.get("categories") or [],
        "monthly_searches": raw.get("monthly_searches") or info.get("monthly_searches") or [],
        "is_seed_keyword": is_seed,
    }


def merge_keywords(ideas: list[dict[str, Any]], seeds: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """One record per keyword (case-insensitive); seed volume data wins over ideas."""
    merged: dict[str, dict[str, Any]] = {}
    for record in ideas:
        merged.setdefault(record["keyword"].lower(), record)
    for record in seeds:
        merged[record["keyword"].lower()] = record
    return list(merged.values())


def passes_filters(keyword: dict[str, Any], params: KeywordDiscoveryParams) -> bool:
    if keyword["search_volume"] < params.min_search_volume:
        return False
    difficulty: Optional[float] = keyword.get("keyword_difficulty")
    if difficulty is not None and difficulty > params.max_keyword_difficulty:
        return False
    if not params.include_questions and is_question_keyword(keyword["keyword"]):
        return False
    if not params.include_long_tail and is_long_tail_keyword(keyword["keyword"]):
        return False
    return True


def process_keyword_results(
    ideas_result: Optional[list[Any]],
    volume_result: Optional[list[Any]],
    params: KeywordDiscoveryParams,
) -> list[dict[str, Any]]:
    """Filter keyword ideas and seed volumes, then annotate survivors.

    Each kept keyword gains ``intent``, ``trend``, ``opportunity_score`` and
    a ``seasonality`` report.
    """
    ideas = [
        normalize_keyword(raw)
        for raw in KeywordsAdapter.flatten_keyword_results(ideas_result)
        if raw.get("keyword")
    ]
    seeds = [
        normalize_keyword(raw, is_seed=True)
        for raw in KeywordsAdapter.flatten_keyword_results(volume_result)
        if raw.get("keyword")
    ]

    processed = []
    for keyword in merge_keywords(ideas, seeds):
        if not passes_filters(keyword, params):
            continue
        volumes, months = ordered_monthly_volumes(keyword["monthly_searches"])
        annotated = annotate_keyword(keyword, volumes)
        annotated["seasonality"] = analyze_seasonality(volumes, months=months).to_dict()
        processed.append(annotated)
    processed.sort(key=lambda kw: (kw["opportunity_score"], kw["search_volume"]), reverse=True)
    return processed


class KeywordDiscoveryWorkflow(ResearchWorkflow):
    """Keyword ideas + seed search volume -> filtered, scored keyword list."""

    query_type = QueryType.KEYWORD_DISCOVERY
    name = "keyword_discovery"
    total_steps = 6
    default_settings = WorkflowSettings(
        timeout_seconds=600, poll_interval_seconds=10, summary_timeout_seconds=120
    )

    def parse_params(self, raw: dict[str, Any]) -> KeywordDiscoveryParams:
        return KeywordDiscoveryParams.from_dict(raw)

    async def _execute(self, query: Query, params: KeywordDiscoveryParams) -> None:
        locale = {"location_name": params.location, "language_name": params.language}

        self._log_step(query.id, 1, "Submit keyword ideas task")
        ideas_id = await self._submit(
            query.id, TaskKind.KEYWORDS_IDEAS, {"keywords": params.seed_keywords, **locale}
        )
        self._progress(query.id, 30)

        self._log_step(query.id, 2, "Submit search volume task")
        volume_id = await self._submit(
            query.id, TaskKind.KEYWORDS_VOLUME, {"keywords": params.seed_keywords, **locale}
        )
        self._progress(query.id, 50)

        self._log_step(query.id, 3, "Wait for provider tasks")
        results = await self._wait(query.id, [ideas_id, volume_id])
        self._progress(query.id, 70)

        self._log_step(query.id, 4, "Filter and score keywords")
        keywords = process_keyword_results(results[ideas_id], results[volume_id], params)
        filters = {
            "min_search_volume": params.min_search_volume,
            "max_keyword_difficulty": params.max_keyword_difficulty,
            "include_questions": params.include_questions,
            "include_long_tail": params.include_long_tail,
        }
        self._store.create_dataset(
            query.id,
            name="Keyword list",
            data_type="keyword_list",
            data=keywords,
            task_id=ideas_id,
            metadata={
                "total_keywords": len(keywords),
                "filters": filters,
                "metrics": KeywordsAdapter.analyze_keyword_metrics(keywords),
            },
        )
        self._progress(query.id, 85)

        if params.wants_summary:
            self._log_step(query.id, 5, "Summarise keyword opportunities")
            top = keywords[:SUMMARY_KEYWORD_LIMIT]
            await self._summarize(query, SummarizationRequest(
                analysis_type="keyword_analysis",
                template_id="keyword_opportunity_analysis",
                variables={
                    "seed_keywords": ", ".join(params.seed_keywords),
                    "filters": filters,
                    "keyword_data": [
                        {k: v for k, v in kw.items() if k not in ("monthly_searches", "seasonality")}
                        for kw in top
                    ],
                    "seasonal_trends": [{"keyword": kw["keyword"], **kw["seasonality"]} for kw in top],
                },
                context={
                    "target_audience": "SEO professionals and marketers",
                    "business_goals": ["increase organic traffic", "improve search rankings"],
                },
                options={
                    "length": "comprehensive" if params.analysis_depth == "comprehensive" else "detailed",
                    "focus": ["quick wins", "long-tail opportunities", "content gaps"],
                },
            ))
        else:
            self._log_step(query.id, 5, "Summary not requested", "skipped")

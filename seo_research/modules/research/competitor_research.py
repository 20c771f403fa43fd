"""Competitor research: ranked keywords for a target and its rivals, gap analysis, market share."""

import logging
from typing import Any, Optional

from seo_research.integrations.labs_api import LabsAdapter, normalize_ranked_item
from seo_research.integrations.routes import TaskKind
from seo_research.models import Query, QueryType
from seo_research.modules.analysis.competitive import (
    RankedKeywordFilters,
    build_domain_profile,
    categorize_competitive_strength,
    market_overview,
    perform_gap_analysis,
)
from seo_research.modules.research.base import ResearchWorkflow, WorkflowSettings
from seo_research.modules.research.params import CompetitorResearchParams
from seo_research.modules.summarization.job_queue import SummarizationRequest

logger = logging.getLogger(__name__)

RANKED_KEYWORDS_LIMIT = 5000
COMPETITORS_LIMIT = 100
DISCOVERED_LIMIT = 20
SUMMARY_GAP_LIMIT = 50


def ranked_keywords_of(result: Optional[list[Any]]) -> tuple[list[dict[str, Any]], Optional[int]]:
    """Normalised ranked keywords and the provider's ``total_count``."""
    keywords = [
        normalized
        for item in LabsAdapter.result_items(result)
        if (normalized := normalize_ranked_item(item)) is not None
    ]
    total = None
    if result and isinstance(result[0], dict):
        total = result[0].get("total_count")
    return keywords, total


def discovered_competitors(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    discovered = []
    for item in items[:DISCOVERED_LIMIT]:
        metrics = item.get("full_domain_metrics") or {}
        metrics = metrics.get("organic", metrics)
        intersections = item.get("intersections") or 0
        avg_position = item.get("avg_position") or 0
        discovered.append({
            "domain": item.get("competitor") or item.get("domain"),
            "intersections": intersections,
            "average_position": avg_position,
            "competitive_strength": categorize_competitive_strength(intersections, avg_position),
            "organic_keywords": metrics.get("organic_keywords", metrics.get("count", 0)),
            "organic_traffic": metrics.get("organic_traffic", metrics.get("etv", 0)),
        })
    return discovered


def _profile_summary(profile: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if profile is None:
        return None
    summary = {key: value for key, value in profile.items() if key != "ranked_keywords"}
    summary["top_keywords"] = profile["top_keywords"][:20]
    return summary


class CompetitorResearchWorkflow(ResearchWorkflow):
    """Ranked keywords for target + competitors, competitor discovery, gap analysis."""

    query_type = QueryType.COMPETITOR_RESEARCH
    name = "competitor_research"
    total_steps = 6
    default_settings = WorkflowSettings(
        timeout_seconds=900, poll_interval_seconds=15, summary_timeout_seconds=180
    )

    def parse_params(self, raw: dict[str, Any]) -> CompetitorResearchParams:
        return CompetitorResearchParams.from_dict(raw)

    async def _execute(self, query: Query, params: CompetitorResearchParams) -> None:
        locale = {"location_name": params.location, "language_name": params.language}

        self._log_step(query.id, 1, f"Submit ranked keywords for {params.target_domain}")
        target_id = await self._submit(
            query.id, TaskKind.RANKED_KEYWORDS,
            {"target": params.target_domain, "limit": RANKED_KEYWORDS_LIMIT, **locale},
        )
        self._progress(query.id, 25)

        self._log_step(query.id, 2, f"Submit ranked keywords for {len(params.competitor_domains)} competitors")
        competitor_ids = [
            await self._submit(
                query.id, TaskKind.RANKED_KEYWORDS,
                {"target": domain, "limit": RANKED_KEYWORDS_LIMIT, **locale},
            )
            for domain in params.competitor_domains
        ]

        self._log_step(query.id, 3, "Submit competitor discovery")
        discovery_id = await self._submit(
            query.id, TaskKind.COMPETITORS,
            {"target": params.target_domain, "limit": COMPETITORS_LIMIT, **locale},
        )
        self._progress(query.id, 50)

        self._log_step(query.id, 4, "Wait for provider tasks")
        results = await self._wait(query.id, [target_id, *competitor_ids, discovery_id])
        self._progress(query.id, 75)

        self._log_step(query.id, 5, "Compare domains")
        analysis = self.analyse(params, results[target_id], [results[i] for i in competitor_ids], results[discovery_id])
        self._store.create_dataset(
            query.id,
            name="Competitor analysis",
            data_type="competitor_analysis",
            data=analysis,
            task_id=target_id,
            metadata={
                "target_domain": params.target_domain,
                "competitor_domains": params.competitor_domains,
                "analysis_type": params.analysis_type,
                "keyword_filters": params.to_dict()["keyword_filters"],
            },
        )
        self._progress(query.id, 85)

        if params.wants_summary:
            self._log_step(query.id, 6, "Summarise competitive gaps")
            gap = analysis["gap_analysis"]
            await self._summarize(query, SummarizationRequest(
                analysis_type="competitor_analysis",
                template_id="competitor_gap_analysis",
                variables={
                    "target_domain": params.target_domain,
                    "target_profile": _profile_summary(analysis["target_domain_data"]),
                    "competitor_profiles": [_profile_summary(p) for p in analysis["competitor_data"]],
                    "gap_analysis": {
                        "keyword_gaps": gap["keyword_gaps"][:SUMMARY_GAP_LIMIT],
                        "opportunity_keywords": gap["opportunity_keywords"][:SUMMARY_GAP_LIMIT],
                        "competitive_advantages": gap["competitive_advantages"],
                    },
                    "market_overview": analysis["market_overview"],
                },
                context={
                    "target_audience": "SEO professionals and digital marketers",
                    "business_goals": ["outrank competitors", "identify content gaps", "improve market share"],
                    "competitor_domains": params.competitor_domains,
                },
                options={
                    "length": "comprehensive" if params.report_depth == "comprehensive" else "detailed",
                    "focus": ["keyword gaps", "content opportunities", "competitive advantages"],
                },
            ))
        else:
            self._log_step(query.id, 6, "Summary not requested", "skipped")

    @staticmethod
    def analyse(
        params: CompetitorResearchParams,
        target_result: Optional[list[Any]],
        competitor_results: list[Optional[list[Any]]],
        discovery_result: Optional[list[Any]],
    ) -> dict[str, Any]:
        """Build the competitor-analysis dataset from raw task results."""
        kf = params.keyword_filters
        filters = RankedKeywordFilters(
            min_search_volume=kf.min_search_volume,
            max_position=kf.max_position,
            include_questions=kf.include_questions,
            include_branded=kf.include_branded,
        )

        target_keywords, target_total = ranked_keywords_of(target_result)
        target_profile = build_domain_profile(params.target_domain, target_keywords, filters, target_total)

        competitor_profiles = []
        for domain, result in zip(params.competitor_domains, competitor_results):
            keywords, total = ranked_keywords_of(result)
            competitor_profiles.append(build_domain_profile(domain, keywords, filters, total))

        discovery_items = LabsAdapter.result_items(discovery_result)
        gap_analysis = perform_gap_analysis(target_profile, competitor_profiles, kf.min_search_volume)
        opportunities = LabsAdapter.analyze_keyword_opportunities(target_keywords)
        gap_analysis["content_gaps"] = opportunities["content_gaps"]

        return {
            "target_domain_data": target_profile,
            "competitor_data": competitor_profiles,
            "competitors_discovered": discovered_competitors(discovery_items),
            "competitor_landscape": LabsAdapter.analyze_competitor_landscape(discovery_items, params.target_domain),
            "keyword_opportunities": {
                "quick_wins": opportunities["quick_wins"],
                "seasonal_keywords": opportunities["seasonal_keywords"],
            },
            "gap_analysis": gap_analysis,
            "market_overview": market_overview(target_profile, competitor_profiles),
        }

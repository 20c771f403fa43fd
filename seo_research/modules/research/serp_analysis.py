"""SERP analysis: organic and local result pages for a keyword set."""

import logging
from typing import Any, Optional

from seo_research.integrations.routes import TaskKind
from seo_research.integrations.serp_api import SerpAdapter
from seo_research.models import Query, QueryType
from seo_research.modules.analysis.competitive import serp_competitor_visibility
from seo_research.modules.research.base import ResearchWorkflow, WorkflowSettings
from seo_research.modules.research.params import SerpAnalysisParams
from seo_research.modules.summarization.job_queue import SummarizationRequest
from seo_research.utils.helpers import extract_domain

logger = logging.getLogger(__name__)

ITEM_FEATURE_FLAGS = (
    "featured_snippet", "people_also_ask", "related_searches", "images",
    "videos", "reviews", "shopping", "local_pack",
)


def item_features(item: dict[str, Any]) -> list[str]:
    """The item's own type plus every feature flag it carries."""
    features = [item["type"]] if item.get("type") else []
    features += [flag for flag in ITEM_FEATURE_FLAGS if item.get(flag) and flag not in features]
    return features


def _first_block(result: Optional[list[Any]]) -> Optional[dict[str, Any]]:
    if result and isinstance(result[0], dict):
        return result[0]
    return None


def process_organic_result(
    result: Optional[list[Any]],
    params: SerpAnalysisParams,
    serp: SerpAdapter,
) -> Optional[dict[str, Any]]:
    block = _first_block(result)
    if block is None:
        return None
    raw_items = [
        item for item in block.get("items") or []
        if (params.include_ads or item.get("type") != "paid")
        and (params.include_featured or item.get("type") != "featured_snippet")
    ]
    return {
        "keyword": block.get("keyword"),
        "type": "organic",
        "location": block.get("location_code"),
        "language": block.get("language_code"),
        "device": params.device,
        "total_results": block.get("se_results_count"),
        "items": [
            {
                "type": item.get("type"),
                "position": item.get("rank_absolute"),
                "title": item.get("title"),
                "url": item.get("url"),
                "domain": item.get("domain") or extract_domain(item.get("url") or ""),
                "description": item.get("description"),
                "serp_features": item_features(item),
            }
            for item in raw_items
        ],
        "serp_features": serp.extract_serp_features(raw_items),
        "content_types": serp.analyze_content_types(raw_items),
        "keyword_difficulty": serp.calculate_keyword_difficulty(raw_items),
    }


def process_local_result(result: Optional[list[Any]], params: SerpAnalysisParams) -> Optional[dict[str, Any]]:
    block = _first_block(result)
    if block is None:
        return None
    return {
        "keyword": block.get("keyword"),
        "type": "local",
        "location": block.get("location_code"),
        "language": block.get("language_code"),
        "device": params.device,
        "total_results": block.get("se_results_count"),
        "items": [
            {
                "type": item.get("type"),
                "position": item.get("rank_absolute"),
                "title": item.get("title"),
                "url": item.get("url"),
                "domain": item.get("domain"),
                "address": item.get("address"),
                "phone": item.get("phone"),
                "rating": item.get("rating"),
                "reviews": item.get("reviews_count"),
                "working_hours": item.get("work_hours"),
            }
            for item in block.get("items") or []
        ],
    }


def all_serp_features(serp_data: list[dict[str, Any]]) -> list[str]:
    features: dict[str, None] = {}
    for result in serp_data:
        for feature in result.get("serp_features", []):
            features.setdefault(feature, None)
    return list(features)


class SerpAnalysisWorkflow(ResearchWorkflow):
    """Organic SERP per keyword, maps results for local keywords, optional competitor view."""

    query_type = QueryType.SERP_ANALYSIS
    name = "serp_analysis"
    total_steps = 6
    default_settings = WorkflowSettings(
        timeout_seconds=600, poll_interval_seconds=10, summary_timeout_seconds=120
    )

    def __init__(self, *args, serp: Optional[SerpAdapter] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._serp = serp or SerpAdapter()

    def parse_params(self, raw: dict[str, Any]) -> SerpAnalysisParams:
        return SerpAnalysisParams.from_dict(raw)

    async def _execute(self, query: Query, params: SerpAnalysisParams) -> None:
        locale = {
            "location_name": params.location,
            "language_name": params.language,
            "device": params.device,
        }

        self._log_step(query.id, 1, f"Submit {len(params.keywords)} organic SERP tasks")
        organic_ids = [
            await self._submit(query.id, TaskKind.SERP_ORGANIC, {"keyword": keyword, **locale})
            for keyword in params.keywords
        ]
        self._progress(query.id, 30)

        local_ids: list[str] = []
        if params.include_local:
            local_keywords = [kw for kw in params.keywords if self._serp.detect_local_intent(kw)]
            self._log_step(query.id, 2, f"Submit {len(local_keywords)} local SERP tasks")
            for keyword in local_keywords:
                local_ids.append(
                    await self._submit(query.id, TaskKind.SERP_MAPS, {"keyword": keyword, **locale})
                )
        else:
            self._log_step(query.id, 2, "Local results not requested", "skipped")
        self._progress(query.id, 50)

        self._log_step(query.id, 3, "Wait for provider tasks")
        results = await self._wait(query.id, organic_ids + local_ids)
        self._progress(query.id, 70)

        self._log_step(query.id, 4, "Analyse SERP results")
        organic = [process_organic_result(results[task_id], params, self._serp) for task_id in organic_ids]
        local = [process_local_result(results[task_id], params) for task_id in local_ids]
        serp_data = [entry for entry in organic + local if entry is not None]
        features = all_serp_features(serp_data)
        self._store.create_dataset(
            query.id,
            name="SERP data",
            data_type="serp_data",
            data=serp_data,
            task_id=organic_ids[0],
            metadata={
                "keywords_analyzed": len(params.keywords),
                "total_results": sum(len(entry["items"]) for entry in serp_data),
                "serp_features": features,
                "analysis_type": params.analysis_type,
            },
        )
        self._progress(query.id, 85)

        competitor_analysis = None
        if params.wants_competitor_analysis:
            competitor_analysis = serp_competitor_visibility(serp_data, params.competitor_domains)
            self._store.create_dataset(
                query.id,
                name="SERP competitor analysis",
                data_type="competitor_analysis",
                data=competitor_analysis,
                task_id=organic_ids[0],
                metadata={
                    "competitor_domains": params.competitor_domains,
                    "analysis_type": "serp_competitor",
                },
            )

        if params.wants_summary:
            self._log_step(query.id, 5, "Summarise SERP findings")
            await self._summarize(query, self._summary_request(params, serp_data, competitor_analysis))
        else:
            self._log_step(query.id, 5, "Summary not requested", "skipped")

    @staticmethod
    def _summary_request(
        params: SerpAnalysisParams,
        serp_data: list[dict[str, Any]],
        competitor_analysis: Optional[dict[str, Any]],
    ) -> SummarizationRequest:
        organic = [entry for entry in serp_data if entry["type"] == "organic"]
        local = [entry for entry in serp_data if entry["type"] == "local"]
        context = {
            "target_audience": "SEO professionals",
            "business_goals": ["improve SERP visibility", "capture featured snippets", "outrank competitors"],
            "competitor_domains": params.competitor_domains,
        }
        if params.analysis_type == "features":
            return SummarizationRequest(
                analysis_type="serp_analysis",
                template_id="serp_feature_optimization",
                variables={
                    "target_keywords": ", ".join(params.keywords),
                    "serp_data": organic,
                    "local_results": local or "No local results collected.",
                },
                context=context,
                options={
                    "length": "detailed",
                    "focus": ["featured snippets", "SERP features", "optimization opportunities"],
                },
            )
        return SummarizationRequest(
            analysis_type="serp_analysis",
            template_id="serp_comprehensive_analysis",
            variables={
                "target_keywords": ", ".join(params.keywords),
                "serp_data": serp_data,
                "competitor_analysis": competitor_analysis or "No competitor domains supplied.",
            },
            context=context,
            options={
                "length": "comprehensive",
                "focus": ["ranking opportunities", "competitor analysis", "content strategy"],
            },
        )

"""Labs adapter: domain competitors, ranked keywords and keyword expansion tasks."""

import logging
from datetime import date
from typing import Any, Callable, Optional

from seo_research.integrations.routes import EndpointRoute, TaskKind

logger = logging.getLogger(__name__)

LABS_BASE = "/v3/dataforseo_labs/google"

DEFAULT_LOCATION = "United States"
DEFAULT_LANGUAGE = "English"
HISTORICAL_DATE_FROM = "2023-01-01"


def _number(value: Any, default: float = 0.0) -> float:
    if isinstance(value, (int, float)):
        return value
    return default


def normalize_ranked_item(item: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Flatten one ranked-keyword item.

    Handles the flat shape (``keyword``/``avg_position``/``search_volume``
    at the top level) and the nested v3 shape (``keyword_data.keyword_info``
    plus ``ranked_serp_element.serp_item``). Returns ``None`` for items
    without a keyword.
    """
    keyword_data = item.get("keyword_data") or {}
    info = keyword_data.get("keyword_info") or {}
    serp_element = item.get("ranked_serp_element") or {}
    serp_item = serp_element.get("serp_item") or serp_element

    keyword = item.get("keyword") or keyword_data.get("keyword")
    if not keyword:
        return None

    position = item.get("avg_position")
    if position is None:
        position = serp_item.get("rank_group", serp_item.get("position"))

    competition = info.get("competition", item.get("competition"))
    return {
        "keyword": keyword,
        "position": _number(position, 101.0),
        "search_volume": int(_number(item.get("search_volume", info.get("search_volume")))),
        "cpc": _number(item.get("cpc", info.get("cpc"))),
        "competition": _number(competition),
        "competition_level": info.get("competition_level") or item.get("competition_level"),
        "url": serp_item.get("url") or "",
        "title": serp_item.get("title") or "",
        "serp_position": serp_item.get("rank_group", serp_item.get("position")),
        "monthly_searches": item.get("monthly_searches") or info.get("monthly_searches") or [],
    }


class LabsAdapter:
    """Builds Labs task payloads and scores competitor/keyword opportunities.

    Usage::

        labs = LabsAdapter()
        payload = labs.build_ranked_keywords_payload({"target": "example.com", "limit": 5000})
        landscape = labs.analyze_competitor_landscape(items, "example.com")
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    def routes(self) -> dict[TaskKind, EndpointRoute]:
        return {
            TaskKind.COMPETITORS: EndpointRoute(
                TaskKind.COMPETITORS, f"{LABS_BASE}/competitors_domain",
                self.build_competitors_payload,
            ),
            TaskKind.RANKED_KEYWORDS: EndpointRoute(
                TaskKind.RANKED_KEYWORDS, f"{LABS_BASE}/ranked_keywords",
                self.build_ranked_keywords_payload,
            ),
            TaskKind.KEYWORD_SUGGESTIONS: EndpointRoute(
                TaskKind.KEYWORD_SUGGESTIONS, f"{LABS_BASE}/keyword_suggestions",
                self.build_keyword_suggestions_payload,
            ),
            TaskKind.RELATED_KEYWORDS: EndpointRoute(
                TaskKind.RELATED_KEYWORDS, f"{LABS_BASE}/related_keywords",
                self.build_related_keywords_payload,
            ),
            TaskKind.HISTORICAL_SERPS: EndpointRoute(
                TaskKind.HISTORICAL_SERPS, f"{LABS_BASE}/historical_serps",
                self.build_historical_serps_payload,
            ),
        }

    # ------------------------------------------------------------------
    # Payload builders
    # ------------------------------------------------------------------

    @staticmethod
    def _locale(request: dict[str, Any]) -> dict[str, Any]:
        return {
            "location_name": request.get("location_name") or DEFAULT_LOCATION,
            "language_name": request.get("language_name") or DEFAULT_LANGUAGE,
        }

    def build_competitors_payload(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        return [{
            "target": request["target"],
            **self._locale(request),
            "limit": request.get("limit") or 100,
            "offset": request.get("offset") or 0,
        }]

    def build_ranked_keywords_payload(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        return [{
            "target": request["target"],
            **self._locale(request),
            "limit": request.get("limit") or 1000,
            "offset": request.get("offset") or 0,
            "filters": [
                ["keyword_data.keyword_info.search_volume", ">", 0],
                "and",
                ["ranked_serp_element.serp_item.rank_group", "<=", 100],
            ],
        }]

    def build_keyword_suggestions_payload(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        return [{
            "keyword": request["keyword"],
            **self._locale(request),
            "limit": request.get("limit") or 700,
            "offset": 0,
            "filters": [["keyword_info.search_volume", ">", 0]],
        }]

    def build_related_keywords_payload(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        return [{
            "keyword": request["keyword"],
            **self._locale(request),
            "limit": request.get("limit") or 1000,
            "offset": 0,
            "depth": request.get("depth") or 2,
            "filters": [["keyword_data.keyword_info.search_volume", ">", 10]],
        }]

    def build_historical_serps_payload(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        return [{
            "keyword": request["keyword"],
            **self._locale(request),
            "date_from": request.get("date_from") or HISTORICAL_DATE_FROM,
            "date_to": request.get("date_to") or self._today().isoformat(),
        }]

    # ------------------------------------------------------------------
    # Result helpers
    # ------------------------------------------------------------------

    @staticmethod
    def result_items(result: Optional[list[Any]]) -> list[dict[str, Any]]:
        """Concatenate ``items`` from every result block of a Labs task."""
        items: list[dict[str, Any]] = []
        for block in result or []:
            if isinstance(block, dict):
                items.extend(block.get("items") or [])
        return items

    @staticmethod
    def analyze_competitor_landscape(
        competitors: list[dict[str, Any]], target_domain: str
    ) -> dict[str, Any]:
        """Rank competitors-domain items and pick out the beatable ones."""
        if not competitors:
            return {
                "target_domain": target_domain,
                "top_competitors": [],
                "weaker_competitors": [],
                "gap_opportunities": [],
                "competitive_metrics": {
                    "avg_organic_keywords": 0,
                    "avg_organic_traffic": 0,
                    "position_distribution": {},
                },
            }

        def metrics_of(competitor: dict[str, Any]) -> dict[str, Any]:
            full = competitor.get("full_domain_metrics") or {}
            return full.get("organic", full)

        def weight(competitor: dict[str, Any]) -> float:
            traffic = _number(metrics_of(competitor).get("organic_traffic", metrics_of(competitor).get("etv")))
            return _number(competitor.get("intersections")) * 0.7 + traffic * 0.3

        ranked = sorted(competitors, key=weight, reverse=True)
        weaker = [
            c for c in ranked
            if _number(c.get("avg_position"), 100) > 5 and _number(c.get("intersections")) < 50
        ]

        opportunities = []
        distribution: dict[str, int] = {}
        keyword_total = 0.0
        traffic_total = 0.0
        for competitor in competitors:
            metrics = metrics_of(competitor)
            traffic = _number(metrics.get("organic_traffic", metrics.get("etv")))
            keywords = _number(metrics.get("organic_keywords", metrics.get("count")))
            intersections = _number(competitor.get("intersections"))
            avg_position = _number(competitor.get("avg_position"), 100)
            keyword_total += keywords
            traffic_total += traffic

            if traffic > 100000 and intersections > 200:
                strength = "high"
            elif traffic > 10000 and intersections > 50:
                strength = "medium"
            else:
                strength = "low"
            if strength != "high":
                opportunities.append({
                    "competitor": competitor.get("competitor") or competitor.get("domain"),
                    "avg_position": avg_position,
                    "organic_keywords": int(keywords),
                    "organic_traffic": int(traffic),
                    "strength": strength,
                })

            if avg_position <= 3:
                bucket = "top-3"
            elif avg_position <= 10:
                bucket = "top-10"
            elif avg_position <= 20:
                bucket = "top-20"
            else:
                bucket = "below-20"
            distribution[bucket] = distribution.get(bucket, 0) + 1

        return {
            "target_domain": target_domain,
            "top_competitors": ranked[:10],
            "weaker_competitors": weaker,
            "gap_opportunities": opportunities[:20],
            "competitive_metrics": {
                "avg_organic_keywords": round(keyword_total / len(competitors)),
                "avg_organic_traffic": round(traffic_total / len(competitors)),
                "position_distribution": distribution,
            },
        }

    @staticmethod
    def analyze_keyword_opportunities(ranked_keywords: list[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
        """Quick wins, content gaps and seasonal keywords from normalised ranked items."""
        quick_wins = [
            k for k in ranked_keywords
            if 11 <= k["position"] <= 20 and k["search_volume"] >= 1000 and k["competition"] < 0.5
        ]
        content_gaps = [
            k for k in ranked_keywords
            if k["position"] > 20 and k["search_volume"] >= 2000
        ]
        seasonal = []
        for k in ranked_keywords:
            volumes = [m.get("search_volume") or 0 for m in k.get("monthly_searches") or []]
            if volumes and max(volumes) > (sum(volumes) / len(volumes)) * 1.5:
                seasonal.append(k)
        return {
            "quick_wins": quick_wins[:50],
            "content_gaps": content_gaps[:100],
            "seasonal_keywords": seasonal[:40],
        }

    @staticmethod
    def calculate_content_opportunity_score(keyword: dict[str, Any]) -> int:
        """0-100 score weighting volume, ranking headroom, competition and CPC."""
        score = 0
        volume = keyword.get("search_volume") or 0
        if volume >= 10000:
            score += 40
        elif volume >= 5000:
            score += 30
        elif volume >= 1000:
            score += 20
        elif volume >= 100:
            score += 10

        position = keyword.get("position", 101)
        if position > 20:
            score += 35
        elif position > 10:
            score += 25
        elif position > 5:
            score += 15

        competition = keyword.get("competition") or 0
        if competition < 0.3:
            score += 15
        elif competition < 0.6:
            score += 10
        else:
            score += 5

        cpc = keyword.get("cpc") or 0
        if cpc >= 5:
            score += 10
        elif cpc >= 2:
            score += 7
        elif cpc >= 0.5:
            score += 5
        return min(100, score)

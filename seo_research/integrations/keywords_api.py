"""Keyword data adapter: search volume, trends and keyword-idea tasks."""

import logging
from datetime import date
from typing import Any, Callable, Optional

from seo_research.integrations.routes import EndpointRoute, TaskKind
from seo_research.modules.analysis.seasonality import analyze_seasonality, ordered_monthly_volumes

logger = logging.getLogger(__name__)

SEARCH_VOLUME_BASE = "/v3/keywords_data/google_ads/search_volume"
TRENDS_BASE = "/v3/keywords_data/google_trends/explore"
KEYWORD_IDEAS_BASE = "/v3/keywords_data/google_ads/keywords_for_keywords"

DEFAULT_LOCATION = "United States"
DEFAULT_LANGUAGE = "English"
DEFAULT_LOCATION_CODE = 2840
DEFAULT_LANGUAGE_CODE = "en"
TRENDS_DATE_FROM = "2019-01-01"


def competition_level(keyword: dict[str, Any]) -> str:
    """Normalise the provider's competition field to ``LOW``/``MEDIUM``/``HIGH``."""
    level = keyword.get("competition_level")
    if not level and isinstance(keyword.get("competition"), str):
        level = keyword["competition"]
    if level:
        return str(level).upper()
    index = keyword.get("competition_index")
    if index is None and isinstance(keyword.get("competition"), (int, float)):
        index = keyword["competition"] * 100
    if index is None:
        return "UNKNOWN"
    if index < 34:
        return "LOW"
    if index < 67:
        return "MEDIUM"
    return "HIGH"


class KeywordsAdapter:
    """Builds keyword-data task payloads and summarises keyword metrics.

    Usage::

        keywords = KeywordsAdapter()
        payload = keywords.build_keyword_ideas_payload({"keywords": ["running shoes"]})
        metrics = keywords.analyze_keyword_metrics(items)
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    def routes(self) -> dict[TaskKind, EndpointRoute]:
        return {
            TaskKind.KEYWORDS_VOLUME: EndpointRoute(
                TaskKind.KEYWORDS_VOLUME, SEARCH_VOLUME_BASE, self.build_search_volume_payload
            ),
            TaskKind.KEYWORDS_TRENDS: EndpointRoute(
                TaskKind.KEYWORDS_TRENDS, TRENDS_BASE, self.build_trends_payload, "advanced"
            ),
            TaskKind.KEYWORDS_IDEAS: EndpointRoute(
                TaskKind.KEYWORDS_IDEAS, KEYWORD_IDEAS_BASE, self.build_keyword_ideas_payload
            ),
        }

    # ------------------------------------------------------------------
    # Payload builders
    # ------------------------------------------------------------------

    def build_search_volume_payload(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        return [{
            "keywords": list(request["keywords"]),
            "location_name": request.get("location_name") or DEFAULT_LOCATION,
            "language_name": request.get("language_name") or DEFAULT_LANGUAGE,
        }]

    def build_trends_payload(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        return [{
            "keywords": list(request["keywords"]),
            "location_code": request.get("location_code") or DEFAULT_LOCATION_CODE,
            "language_code": request.get("language_code") or DEFAULT_LANGUAGE_CODE,
            "date_from": request.get("date_from") or TRENDS_DATE_FROM,
            "date_to": request.get("date_to") or self._today().isoformat(),
        }]

    def build_keyword_ideas_payload(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        task = {
            "keywords": list(request["keywords"]),
            "location_name": request.get("location_name") or DEFAULT_LOCATION,
            "language_name": request.get("language_name") or DEFAULT_LANGUAGE,
            "search_partners": False,
        }
        for key in ("date_from", "date_to"):
            if request.get(key):
                task[key] = request[key]
        return [task]

    # ------------------------------------------------------------------
    # Result helpers
    # ------------------------------------------------------------------

    @staticmethod
    def flatten_keyword_results(result: Optional[list[Any]]) -> list[dict[str, Any]]:
        """Keyword records from a task result.

        Accepts both a flat list of keyword items and items that group
        keywords under a ``keywords`` key.
        """
        records: list[dict[str, Any]] = []
        for item in result or []:
            if not isinstance(item, dict):
                continue
            nested = item.get("keywords")
            if isinstance(nested, list) and nested and isinstance(nested[0], dict):
                records.extend(nested)
            elif item.get("keyword"):
                records.append(item)
        return records

    @staticmethod
    def analyze_keyword_metrics(keywords: list[dict[str, Any]]) -> dict[str, Any]:
        """Averages, competition spread and shortlists for a keyword set."""
        if not keywords:
            return {
                "avg_search_volume": 0,
                "avg_cpc": 0.0,
                "competition_distribution": {},
                "top_keywords": [],
                "long_tail_keywords": [],
                "low_competition_high_volume": [],
            }

        volumes = [kw.get("search_volume") or 0 for kw in keywords]
        cpcs = [kw.get("cpc") or 0.0 for kw in keywords]

        distribution: dict[str, int] = {}
        for kw in keywords:
            level = competition_level(kw)
            distribution[level] = distribution.get(level, 0) + 1

        top = sorted(keywords, key=lambda k: k.get("search_volume") or 0, reverse=True)[:10]
        long_tail = [
            kw for kw in keywords
            if len(kw["keyword"].split()) >= 3 and (kw.get("search_volume") or 0) >= 100
        ]
        low_comp = [
            kw for kw in keywords
            if competition_level(kw) == "LOW" and (kw.get("search_volume") or 0) >= 1000
        ]
        return {
            "avg_search_volume": round(sum(volumes) / len(volumes)),
            "avg_cpc": round(sum(cpcs) / len(cpcs), 2),
            "competition_distribution": distribution,
            "top_keywords": top,
            "long_tail_keywords": long_tail,
            "low_competition_high_volume": low_comp,
        }

    @staticmethod
    def extract_seasonal_trends(keywords: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Seasonality label, peak months and trend direction per keyword."""
        trends = []
        for kw in keywords:
            volumes, months = ordered_monthly_volumes(kw.get("monthly_searches") or [])
            report = analyze_seasonality(volumes, months=months)
            trends.append({"keyword": kw.get("keyword", ""), **report.to_dict()})
        return trends

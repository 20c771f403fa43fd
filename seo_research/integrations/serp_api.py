"""SERP adapter: organic and maps task payloads plus SERP analysis helpers."""

import logging
import re
from typing import Any

from seo_research.integrations.routes import EndpointRoute, TaskKind
from seo_research.utils.helpers import extract_domain, url_path_depth

logger = logging.getLogger(__name__)

ORGANIC_BASE = "/v3/serp/google/organic"
MAPS_BASE = "/v3/business_data/google/maps"

DEFAULT_LOCATION = "United States"
DEFAULT_LANGUAGE = "English"
DEFAULT_DEVICE = "desktop"
DEFAULT_OS = "windows"
MOBILE_OS = "android"
DEFAULT_DEPTH = 100

LOCAL_INTENT_CUES = (
    "near me", "nearby", "in", "restaurant", "hotel", "store", "shop",
    "clinic", "dentist", "lawyer", "plumber", "mechanic", "hours",
    "address", "phone number", "directions", "location", "local",
)

HIGH_AUTHORITY_DOMAINS = frozenset({
    "wikipedia.org", "en.wikipedia.org", "youtube.com", "amazon.com", "reddit.com",
})

# Ordered: the first matching bucket wins.
CONTENT_TYPE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("video", ("video", "youtube")),
    ("image", ("image", "photo")),
    ("product", ("product", "buy", "shop")),
    ("howto", ("how to", "guide", "tutorial")),
    ("list", ("list", "best", "top")),
)

_LOCAL_CUE_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(cue) for cue in LOCAL_INTENT_CUES) + r")\b"
)


def _keywords_of(request: dict[str, Any]) -> list[str]:
    keywords = request.get("keywords")
    if keywords is None:
        keywords = [request["keyword"]] if request.get("keyword") else []
    return [kw for kw in keywords if kw]


class SerpAdapter:
    """Builds organic / maps SERP task payloads and analyses SERP items.

    Usage::

        serp = SerpAdapter()
        payload = serp.build_organic_payload({"keywords": ["running shoes"], "device": "mobile"})
        difficulty = serp.calculate_keyword_difficulty(result["items"])
    """

    def routes(self) -> dict[TaskKind, EndpointRoute]:
        return {
            TaskKind.SERP_ORGANIC: EndpointRoute(
                TaskKind.SERP_ORGANIC, ORGANIC_BASE, self.build_organic_payload, "advanced"
            ),
            TaskKind.SERP_MAPS: EndpointRoute(
                TaskKind.SERP_MAPS, MAPS_BASE, self.build_maps_payload, "advanced"
            ),
        }

    # ------------------------------------------------------------------
    # Payload builders
    # ------------------------------------------------------------------

    def build_organic_payload(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        device = request.get("device") or DEFAULT_DEVICE
        default_os = MOBILE_OS if device == "mobile" else DEFAULT_OS
        payload = []
        for keyword in _keywords_of(request):
            task = {
                "keyword": keyword,
                "location_name": request.get("location_name") or DEFAULT_LOCATION,
                "language_name": request.get("language_name") or DEFAULT_LANGUAGE,
                "device": device,
                "os": request.get("os") or default_os,
                "depth": request.get("depth") or DEFAULT_DEPTH,
            }
            if request.get("location_code"):
                task["location_code"] = request["location_code"]
                task.pop("location_name")
            payload.append(task)
        return payload

    def build_maps_payload(self, request: dict[str, Any]) -> list[dict[str, Any]]:
        return [
            {
                "keyword": keyword,
                "location_name": request.get("location_name") or DEFAULT_LOCATION,
                "language_name": request.get("language_name") or DEFAULT_LANGUAGE,
                "device": request.get("device") or DEFAULT_DEVICE,
            }
            for keyword in _keywords_of(request)
        ]

    # ------------------------------------------------------------------
    # Analysis helpers
    # ------------------------------------------------------------------

    @staticmethod
    def detect_local_intent(keyword: str) -> bool:
        """True if the keyword contains a locality cue as a whole word or phrase."""
        return bool(_LOCAL_CUE_PATTERN.search(keyword.lower()))

    @staticmethod
    def extract_serp_features(items: list[dict[str, Any]]) -> list[str]:
        """Distinct item types on the page, in first-seen order."""
        features: dict[str, None] = {}
        for item in items:
            item_type = item.get("type")
            if item_type:
                features.setdefault(item_type, None)
        return list(features)

    @staticmethod
    def classify_content_type(item: dict[str, Any]) -> str:
        text = f"{item.get('title') or ''} {item.get('description') or ''}".lower()
        for bucket, needles in CONTENT_TYPE_RULES:
            if any(needle in text for needle in needles):
                return bucket
        return "article"

    def analyze_content_types(self, items: list[dict[str, Any]]) -> dict[str, int]:
        """Count organic items per content bucket."""
        counts: dict[str, int] = {}
        for item in items:
            if item.get("type") != "organic":
                continue
            bucket = self.classify_content_type(item)
            counts[bucket] = counts.get(bucket, 0) + 1
        return counts

    @staticmethod
    def calculate_keyword_difficulty(items: list[dict[str, Any]]) -> int:
        """0-100 difficulty proxy from authority domains and shallow URLs."""
        organic = [item for item in items if item.get("type") == "organic"]
        if not organic:
            return 0
        difficulty = 0
        for item in organic:
            domain = extract_domain(item.get("domain") or item.get("url") or "")
            if domain in HIGH_AUTHORITY_DOMAINS:
                difficulty += 15
            elif domain.endswith(".gov") or domain.endswith(".edu"):
                difficulty += 10
            if url_path_depth(item.get("url") or "") <= 1:
                difficulty += 5
        return max(0, min(100, difficulty))

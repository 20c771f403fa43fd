"""Keyword-level scoring: intent, trend, opportunity and click-through traffic."""

import math
import re
from typing import Any, Iterable, Optional

QUESTION_WORDS = ("what", "how", "why", "when", "where", "who", "which", "can", "do", "does", "is", "are")
BRAND_TERMS = ("brand", "company", "official", "login", "account")

# Checked in this order; the first list with a hit decides the intent.
INTENT_TERMS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("commercial", ("buy", "purchase", "price", "cost", "cheap", "discount", "deal")),
    ("transactional", ("order", "shop", "store", "cart", "checkout", "payment")),
    ("navigational", ("login", "account", "dashboard", "website", "official")),
)

_INTENT_PATTERNS = [
    (intent, re.compile(r"\b(?:" + "|".join(terms) + r")"))
    for intent, terms in INTENT_TERMS
]

CTR_BY_POSITION = {
    1: 0.28, 2: 0.15, 3: 0.11, 4: 0.08, 5: 0.07,
    6: 0.05, 7: 0.04, 8: 0.03, 9: 0.03, 10: 0.02,
}
CTR_PAGE_TWO = 0.01
CTR_BEYOND = 0.005

VOLUME_TIERS = ((10000, 40), (5000, 30), (1000, 20), (100, 10))
COMPETITION_POINTS = {"LOW": 30, "MEDIUM": 15, "HIGH": 5}
INTENT_POINTS = {"transactional": 20, "commercial": 15, "informational": 10, "navigational": 0}
TREND_POINTS = {"up": 10, "stable": 5, "down": 0}


def is_question_keyword(keyword: str) -> bool:
    lowered = keyword.lower()
    return any(lowered.startswith(word + " ") for word in QUESTION_WORDS)


def is_long_tail_keyword(keyword: str) -> bool:
    return len(keyword.split()) >= 3


def is_branded_keyword(keyword: str, brand_terms: Iterable[str] = BRAND_TERMS) -> bool:
    lowered = keyword.lower()
    return any(term in lowered for term in brand_terms)


def detect_intent(keyword: str) -> str:
    """Classify a keyword as commercial, transactional, navigational or informational."""
    lowered = keyword.lower()
    for intent, pattern in _INTENT_PATTERNS:
        if pattern.search(lowered):
            return intent
    return "informational"


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def relative_change(earlier: list[float], recent: list[float]) -> float:
    """Fractional change of the recent mean over the earlier mean.

    A zero baseline yields 1.0 when the recent mean is positive, else 0.0.
    """
    before = _mean(earlier)
    after = _mean(recent)
    if before == 0:
        return 1.0 if after > 0 else 0.0
    return (after - before) / before


def keyword_trend(volumes: list[float]) -> str:
    """``up``/``down``/``stable`` from the last three months against the first three."""
    if len(volumes) < 2:
        return "stable"
    change = relative_change(volumes[:3], volumes[-3:])
    if change > 0.1:
        return "up"
    if change < -0.1:
        return "down"
    return "stable"


def opportunity_score(
    search_volume: Optional[float],
    competition_level: Optional[str],
    intent: str,
    trend: str,
) -> int:
    """Composite 0-100 attractiveness score for one keyword."""
    volume = search_volume or 0
    score = 0
    for threshold, points in VOLUME_TIERS:
        if volume >= threshold:
            score += points
            break
    score += COMPETITION_POINTS.get((competition_level or "").upper(), 0)
    score += INTENT_POINTS.get(intent, 0)
    score += TREND_POINTS.get(trend, 0)
    return max(0, min(100, score))


def ctr_for_position(position: float) -> float:
    """Estimated click-through rate for a (possibly fractional) ranking position."""
    if position <= 0:
        return 0.0
    bucket = math.ceil(position)
    if bucket in CTR_BY_POSITION:
        return CTR_BY_POSITION[bucket]
    return CTR_PAGE_TWO if position <= 20 else CTR_BEYOND


def estimate_traffic(search_volume: Optional[float], position: float) -> int:
    """Monthly clicks for a ranking; halves round up."""
    return math.floor((search_volume or 0) * ctr_for_position(position) + 0.5)


def annotate_keyword(keyword: dict[str, Any], volumes: list[float]) -> dict[str, Any]:
    """Return ``keyword`` with ``intent``, ``trend`` and ``opportunity_score`` added."""
    intent = detect_intent(keyword["keyword"])
    trend = keyword_trend(volumes)
    return {
        **keyword,
        "intent": intent,
        "trend": trend,
        "opportunity_score": opportunity_score(
            keyword.get("search_volume"), keyword.get("competition_level"), intent, trend
        ),
    }

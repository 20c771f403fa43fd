"""Analysis module -- deterministic scoring, competitive gap and seasonality functions."""

from seo_research.modules.analysis.competitive import (
    RankedKeywordFilters,
    build_domain_profile,
    categorize_competitive_strength,
    classify_gap,
    competitive_strength,
    market_overview,
    perform_gap_analysis,
    serp_competitor_visibility,
)
from seo_research.modules.analysis.scoring import (
    annotate_keyword,
    ctr_for_position,
    detect_intent,
    estimate_traffic,
    keyword_trend,
    opportunity_score,
)
from seo_research.modules.analysis.seasonality import SeasonalityReport, analyze_seasonality

__all__ = [
    "RankedKeywordFilters",
    "SeasonalityReport",
    "analyze_seasonality",
    "annotate_keyword",
    "build_domain_profile",
    "categorize_competitive_strength",
    "classify_gap",
    "competitive_strength",
    "ctr_for_position",
    "detect_intent",
    "estimate_traffic",
    "keyword_trend",
    "market_overview",
    "opportunity_score",
    "perform_gap_analysis",
    "serp_competitor_visibility",
]

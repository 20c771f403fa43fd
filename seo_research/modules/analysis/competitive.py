"""Competitor analytics: domain metrics, strength labels, keyword gaps and market share."""

from dataclasses import dataclass
from typing import Any, Optional

from seo_research.modules.analysis.scoring import (
    estimate_traffic,
    is_branded_keyword,
    is_question_keyword,
)
from seo_research.utils.helpers import same_domain

GAP_LIMIT = 500
OPPORTUNITY_LIMIT = 100
ADVANTAGE_LIMIT = 50
ADVANTAGE_MIN_VOLUME = 500


@dataclass
class RankedKeywordFilters:
    """Filters applied to a domain's ranked keywords before comparison."""

    min_search_volume: int = 0
    max_position: float = 100
    include_questions: bool = True
    include_branded: bool = True

    def accepts(self, keyword: dict[str, Any]) -> bool:
        if keyword["search_volume"] < self.min_search_volume:
            return False
        if keyword["position"] > self.max_position:
            return False
        if not self.include_questions and is_question_keyword(keyword["keyword"]):
            return False
        if not self.include_branded and is_branded_keyword(keyword["keyword"]):
            return False
        return True


def filter_ranked_keywords(
    keywords: list[dict[str, Any]], filters: RankedKeywordFilters
) -> list[dict[str, Any]]:
    """Apply ``filters`` and attach a traffic estimate to each surviving keyword."""
    return [
        {**kw, "traffic": estimate_traffic(kw["search_volume"], kw["position"])}
        for kw in keywords
        if filters.accepts(kw)
    ]


def organic_traffic(keywords: list[dict[str, Any]]) -> int:
    return sum(estimate_traffic(kw["search_volume"], kw["position"]) for kw in keywords)


def average_position(keywords: list[dict[str, Any]]) -> float:
    if not keywords:
        return 0.0
    return round(sum(kw["position"] for kw in keywords) / len(keywords), 1)


def top_keywords(keywords: list[dict[str, Any]], limit: int = 50) -> list[dict[str, Any]]:
    """Keywords ordered by estimated traffic, highest first."""
    with_traffic = [
        {
            "keyword": kw["keyword"],
            "position": kw["position"],
            "search_volume": kw["search_volume"],
            "traffic": estimate_traffic(kw["search_volume"], kw["position"]),
        }
        for kw in keywords
    ]
    with_traffic.sort(key=lambda kw: kw["traffic"], reverse=True)
    return with_traffic[:limit]


def competitive_strength(traffic: float, avg_position: float, keyword_count: int) -> str:
    """Label a domain from its traffic, average position and keyword footprint."""
    if traffic > 100000 and avg_position < 15 and keyword_count > 1000:
        return "Very Strong"
    if traffic > 50000 and avg_position < 20 and keyword_count > 500:
        return "Strong"
    if traffic > 10000 and avg_position < 25 and keyword_count > 200:
        return "Moderate"
    return "Weak"


def categorize_competitive_strength(intersections: float, avg_position: float) -> str:
    """Label a discovered competitor from shared keywords and average position."""
    if intersections > 1000 and avg_position < 10:
        return "Very Strong"
    if intersections > 500 and avg_position < 15:
        return "Strong"
    if intersections > 200 and avg_position < 20:
        return "Moderate"
    return "Weak"


def classify_gap(position: float, competitors_ranking: int, search_volume: float) -> str:
    """Opportunity of a keyword the target does not rank for."""
    if position <= 10 and competitors_ranking >= 2 and search_volume >= 1000:
        return "High"
    if position <= 20 and competitors_ranking >= 1 and search_volume >= 500:
        return "Medium"
    return "Low"


def build_domain_profile(
    domain: str,
    keywords: list[dict[str, Any]],
    filters: RankedKeywordFilters,
    total_count: Optional[int] = None,
) -> dict[str, Any]:
    """Metrics for one domain's normalised ranked keywords."""
    traffic = organic_traffic(keywords)
    avg_position = average_position(keywords)
    return {
        "domain": domain,
        "total_keywords": total_count if total_count is not None else len(keywords),
        "ranked_keywords": filter_ranked_keywords(keywords, filters),
        "organic_traffic": traffic,
        "average_position": avg_position,
        "top_keywords": top_keywords(keywords, 50),
        "competitive_strength": competitive_strength(traffic, avg_position, len(keywords)),
    }


def find_competitive_advantages(
    target: Optional[dict[str, Any]], competitors: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Target keywords (volume >= 500) where the target outranks at least one competitor."""
    if not target:
        return []
    competitor_positions = [
        {kw["keyword"]: kw["position"] for kw in comp["ranked_keywords"]}
        for comp in competitors
    ]
    advantages = []
    for kw in target["ranked_keywords"]:
        positions = [index[kw["keyword"]] for index in competitor_positions if kw["keyword"] in index]
        beaten = sum(1 for pos in positions if kw["position"] < pos)
        if beaten > 0 and kw["search_volume"] >= ADVANTAGE_MIN_VOLUME:
            advantages.append({
                "keyword": kw["keyword"],
                "target_position": kw["position"],
                "competitors_beat": beaten,
                "average_competitor_position": round(sum(positions) / len(positions), 1),
                "search_volume": kw["search_volume"],
                "traffic": kw["traffic"],
            })
    advantages.sort(key=lambda adv: adv["traffic"], reverse=True)
    return advantages[:ADVANTAGE_LIMIT]


def perform_gap_analysis(
    target: Optional[dict[str, Any]],
    competitors: list[dict[str, Any]],
    min_search_volume: int = 0,
) -> dict[str, list[dict[str, Any]]]:
    """Keywords competitors rank for and the target does not.

    Each gap is reported once. When several competitors rank a keyword the
    last one listed supplies the position and domain, while the gap keeps
    the place of its first appearance. Gaps are ordered by search volume
    and capped at 500.
    """
    target_keywords = {kw["keyword"] for kw in (target or {}).get("ranked_keywords", [])}
    ranking_counts: dict[str, int] = {}
    for comp in competitors:
        for keyword in {kw["keyword"] for kw in comp["ranked_keywords"]}:
            ranking_counts[keyword] = ranking_counts.get(keyword, 0) + 1

    gaps: dict[str, dict[str, Any]] = {}
    for comp in competitors:
        for kw in comp["ranked_keywords"]:
            if kw["keyword"] in target_keywords:
                continue
            competitors_ranking = ranking_counts[kw["keyword"]]
            gaps[kw["keyword"]] = {
                "keyword": kw["keyword"],
                "search_volume": kw["search_volume"],
                "competitor_position": kw["position"],
                "competitor_domain": comp["domain"],
                "competitors_ranking": competitors_ranking,
                "opportunity": classify_gap(kw["position"], competitors_ranking, kw["search_volume"]),
            }

    keyword_gaps = sorted(gaps.values(), key=lambda gap: gap["search_volume"], reverse=True)
    opportunity_keywords = [
        gap for gap in keyword_gaps
        if gap["opportunity"] == "High" and gap["search_volume"] >= min_search_volume
    ]
    return {
        "keyword_gaps": keyword_gaps[:GAP_LIMIT],
        "opportunity_keywords": opportunity_keywords[:OPPORTUNITY_LIMIT],
        "content_gaps": [],
        "competitive_advantages": find_competitive_advantages(target, competitors),
    }


def market_overview(
    target: Optional[dict[str, Any]], competitors: list[dict[str, Any]]
) -> dict[str, Any]:
    """Keyword share and top performers across the target and its competitors."""
    domains = [d for d in [target, *competitors] if d]
    if not domains:
        return {"total_keywords": 0, "average_position": 0.0, "market_share": {}, "top_performers": []}

    total_keywords = sum(d["total_keywords"] or 0 for d in domains)
    share = {
        d["domain"]: {
            "keywords": d["total_keywords"] or 0,
            "traffic": d["organic_traffic"],
            "percentage": round((d["total_keywords"] or 0) / total_keywords * 100, 2) if total_keywords else 0.0,
        }
        for d in domains
    }
    performers = sorted(domains, key=lambda d: d["organic_traffic"], reverse=True)[:5]
    return {
        "total_keywords": total_keywords,
        "average_position": round(sum(d["average_position"] for d in domains) / len(domains), 1),
        "market_share": share,
        "top_performers": [
            {
                "domain": d["domain"],
                "organic_traffic": d["organic_traffic"],
                "total_keywords": d["total_keywords"],
                "average_position": d["average_position"],
            }
            for d in performers
        ],
    }


def serp_competitor_visibility(
    serp_data: list[dict[str, Any]], competitor_domains: list[str]
) -> dict[str, Any]:
    """How often each competitor appears on the analysed organic SERPs.

    Also lists keywords with no competitor in the top 10 and groups
    keywords by the SERP features they show.
    """
    organic = [result for result in serp_data if result.get("type") == "organic"]
    performance = []
    for domain in competitor_domains:
        appearances = 0
        positions: list[float] = []
        top_positions = 0
        featured = 0
        covered: list[str] = []
        missed: list[str] = []
        for result in organic:
            items = [
                item for item in result.get("items", [])
                if same_domain(item.get("domain") or item.get("url") or "", domain)
            ]
            if not items:
                missed.append(result["keyword"])
                continue
            appearances += 1
            covered.append(result["keyword"])
            for item in items:
                position = item.get("position") or 0
                positions.append(position)
                if position and position <= 3:
                    top_positions += 1
                if "featured_snippet" in item.get("serp_features", []):
                    featured += 1
        performance.append({
            "domain": domain,
            "total_appearances": appearances,
            "average_position": round(sum(positions) / appearances, 1) if appearances else 0.0,
            "top_positions": top_positions,
            "featured_snippets": featured,
            "keywords_covered": covered,
            "missed_opportunities": missed,
        })

    opportunities = []
    features: dict[str, list[str]] = {}
    for result in organic:
        top_ten = result.get("items", [])[:10]
        if not any(
            same_domain(item.get("domain") or item.get("url") or "", domain)
            for item in top_ten for domain in competitor_domains
        ):
            opportunities.append({
                "keyword": result["keyword"],
                "difficulty": result.get("keyword_difficulty"),
                "content_types": result.get("content_types", {}),
                "serp_features": result.get("serp_features", []),
            })
        for feature in result.get("serp_features", []):
            features.setdefault(feature, []).append(result["keyword"])

    visibility = (
        sum(p["total_appearances"] for p in performance) / (len(performance) * len(organic)) * 100
        if performance and organic else 0.0
    )
    return {
        "overview": {
            "total_keywords": len(organic),
            "competitor_domains": len(competitor_domains),
            "average_competitor_visibility": round(visibility, 1),
        },
        "competitor_performance": performance,
        "keyword_opportunities": opportunities,
        "serp_feature_opportunities": [
            {"feature": feature, "keywords": keywords} for feature, keywords in features.items()
        ],
    }

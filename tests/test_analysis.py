"""Tests for keyword scoring, seasonality and competitor analytics."""

import pytest

from seo_research.modules.analysis.competitive import (
    RankedKeywordFilters,
    build_domain_profile,
    categorize_competitive_strength,
    classify_gap,
    competitive_strength,
    filter_ranked_keywords,
    market_overview,
    perform_gap_analysis,
    serp_competitor_visibility,
)
from seo_research.modules.analysis.scoring import (
    annotate_keyword,
    ctr_for_position,
    detect_intent,
    estimate_traffic,
    is_question_keyword,
    keyword_trend,
    opportunity_score,
    relative_change,
)
from seo_research.modules.analysis.seasonality import analyze_seasonality, ordered_monthly_volumes


def _kw(keyword, position, volume, **extra):
    return {"keyword": keyword, "position": position, "search_volume": volume, **extra}


# ===========================================================================
# Intent and trend
# ===========================================================================
class TestIntentAndTrend:

    @pytest.mark.parametrize("keyword,intent", [
        ("buy running shoes", "commercial"),
        ("cheap shop deals", "commercial"),
        ("order pizza online", "transactional"),
        ("nike official website", "navigational"),
        ("how to tie shoes", "informational"),
        ("border collie training", "informational"),
    ])
    def test_detect_intent(self, keyword, intent):
        assert detect_intent(keyword) == intent

    @pytest.mark.parametrize("volumes,trend", [
        ([100, 100, 100, 200, 200, 200], "up"),
        ([200, 200, 200, 100, 100, 100], "down"),
        ([100, 105, 100, 100, 102, 100], "stable"),
        ([0, 0, 0, 0, 0, 10], "up"),
        ([500], "stable"),
        ([], "stable"),
    ])
    def test_keyword_trend(self, volumes, trend):
        assert keyword_trend(volumes) == trend

    def test_relative_change_zero_baseline(self):
        assert relative_change([0, 0], [5]) == 1.0
        assert relative_change([0, 0], [0]) == 0.0
        assert relative_change([100], [150]) == 0.5

    def test_question_keyword(self):
        assert is_question_keyword("how to lace shoes")
        assert not is_question_keyword("however shoes")


# ===========================================================================
# Opportunity score
# ===========================================================================
class TestOpportunityScore:

    @pytest.mark.parametrize("volume", [None, 0, 50, 150, 1500, 7000, 250000])
    @pytest.mark.parametrize("competition", [None, "LOW", "medium", "HIGH", "UNKNOWN"])
    @pytest.mark.parametrize("intent", ["transactional", "commercial", "informational", "navigational"])
    @pytest.mark.parametrize("trend", ["up", "stable", "down"])
    def test_score_in_range(self, volume, competition, intent, trend):
        assert 0 <= opportunity_score(volume, competition, intent, trend) <= 100

    def test_score_components(self):
        assert opportunity_score(12000, "LOW", "transactional", "up") == 100
        assert opportunity_score(None, None, "navigational", "down") == 0
        assert opportunity_score(1500, "medium", "informational", "stable") == 20 + 15 + 10 + 5

    def test_annotate_keyword(self):
        annotated = annotate_keyword(
            {"keyword": "buy trail shoes", "search_volume": 5000, "competition_level": "LOW"},
            [100, 100, 100, 200, 200, 200],
        )
        assert annotated["intent"] == "commercial"
        assert annotated["trend"] == "up"
        assert annotated["opportunity_score"] == 30 + 30 + 15 + 10


# ===========================================================================
# CTR and traffic
# ===========================================================================
class TestTraffic:

    @pytest.mark.parametrize("position,ctr", [
        (1, 0.28),
        (1.4, 0.15),
        (3, 0.11),
        (10, 0.02),
        (15, 0.01),
        (20, 0.01),
        (25, 0.005),
        (0, 0.0),
    ])
    def test_ctr_for_position(self, position, ctr):
        assert ctr_for_position(position) == ctr

    def test_estimate_traffic(self):
        assert estimate_traffic(1000, 1) == 280
        assert estimate_traffic(None, 1) == 0
        assert estimate_traffic(10000, 50) == 50

    @pytest.mark.parametrize("volume,position,traffic", [
        (100, 25, 1),
        (500, 25, 3),
        (300, 25, 2),
        (40, 15, 0),
    ])
    def test_estimate_traffic_rounds_halves_up(self, volume, position, traffic):
        assert estimate_traffic(volume, position) == traffic


# ===========================================================================
# Strength labels and gaps
# ===========================================================================
class TestCompetitive:

    @pytest.mark.parametrize("traffic,avg_position,count,label", [
        (150000, 10, 2000, "Very Strong"),
        (60000, 18, 600, "Strong"),
        (20000, 22, 300, "Moderate"),
        (150000, 30, 2000, "Weak"),
    ])
    def test_competitive_strength(self, traffic, avg_position, count, label):
        assert competitive_strength(traffic, avg_position, count) == label

    @pytest.mark.parametrize("intersections,avg_position,label", [
        (1500, 5, "Very Strong"),
        (600, 12, "Strong"),
        (300, 18, "Moderate"),
        (50, 3, "Weak"),
    ])
    def test_categorize_competitive_strength(self, intersections, avg_position, label):
        assert categorize_competitive_strength(intersections, avg_position) == label

    @pytest.mark.parametrize("position,competitors,volume,label", [
        (8, 2, 1200, "High"),
        (5, 1, 3000, "Medium"),
        (8, 2, 900, "Medium"),
        (15, 1, 500, "Medium"),
        (25, 3, 5000, "Low"),
        (12, 0, 5000, "Low"),
    ])
    def test_classify_gap(self, position, competitors, volume, label):
        assert classify_gap(position, competitors, volume) == label

    def test_filters(self):
        keywords = [
            _kw("what are running shoes", 4, 900),
            _kw("nike official store", 2, 5000),
            _kw("trail shoes", 30, 2000),
            _kw("rare shoes", 5, 10),
        ]
        filters = RankedKeywordFilters(
            min_search_volume=100, max_position=20, include_questions=False, include_branded=False
        )
        assert filter_ranked_keywords(keywords, filters) == []

        kept = filter_ranked_keywords(keywords, RankedKeywordFilters(max_position=20))
        assert [k["keyword"] for k in kept] == ["what are running shoes", "nike official store", "rare shoes"]
        assert kept[1]["traffic"] == estimate_traffic(5000, 2)

    def test_gap_analysis_two_competitors(self):
        filters = RankedKeywordFilters()
        target = build_domain_profile("example.com", [_kw("trail shoes", 3, 800)], filters)
        competitors = [
            build_domain_profile("a.com", [_kw("best running shoes", 8, 1200), _kw("trail shoes", 9, 800)], filters),
            build_domain_profile("b.com", [_kw("best running shoes", 8, 1200)], filters),
        ]

        gaps = perform_gap_analysis(target, competitors)

        assert len(gaps["keyword_gaps"]) == 1
        gap = gaps["keyword_gaps"][0]
        assert gap["keyword"] == "best running shoes"
        assert gap["competitor_domain"] == "b.com"
        assert gap["competitors_ranking"] == 2
        assert gap["opportunity"] == "High"
        assert gaps["opportunity_keywords"] == [gap]

        advantage = gaps["competitive_advantages"][0]
        assert advantage["keyword"] == "trail shoes"
        assert advantage["competitors_beat"] == 1
        assert advantage["traffic"] == estimate_traffic(800, 3)

    def test_gap_takes_last_competitor_ranking(self):
        filters = RankedKeywordFilters()
        competitors = [
            build_domain_profile("a.com", [_kw("trail shoes", 4, 900), _kw("road shoes", 8, 900)], filters),
            build_domain_profile("b.com", [_kw("road shoes", 12, 900)], filters),
        ]

        gaps = perform_gap_analysis(None, competitors)

        assert [g["keyword"] for g in gaps["keyword_gaps"]] == ["trail shoes", "road shoes"]
        road = gaps["keyword_gaps"][1]
        assert (road["competitor_domain"], road["competitor_position"]) == ("b.com", 12)
        assert road["competitors_ranking"] == 2
        assert road["opportunity"] == "Medium"

    def test_gap_analysis_without_target(self):
        competitor = build_domain_profile("a.com", [_kw("best running shoes", 5, 3000)], RankedKeywordFilters())
        gaps = perform_gap_analysis(None, [competitor])
        assert gaps["keyword_gaps"][0]["opportunity"] == "Medium"
        assert gaps["opportunity_keywords"] == []
        assert gaps["competitive_advantages"] == []

    def test_market_overview(self):
        filters = RankedKeywordFilters()
        target = build_domain_profile("example.com", [_kw("a", 5, 1000)], filters, total_count=30)
        competitor = build_domain_profile("rival.com", [_kw("b", 1, 1000)], filters, total_count=10)

        overview = market_overview(target, [competitor])

        assert overview["total_keywords"] == 40
        assert overview["market_share"]["example.com"]["percentage"] == 75.0
        assert overview["market_share"]["rival.com"]["percentage"] == 25.0
        assert overview["top_performers"][0]["domain"] == "rival.com"

    def test_market_overview_empty(self):
        assert market_overview(None, [])["market_share"] == {}

    def test_serp_competitor_visibility(self):
        serp_data = [
            {
                "type": "organic",
                "keyword": "running shoes",
                "items": [{"url": "https://www.nike.com/running", "position": 1,
                           "serp_features": ["featured_snippet"]}],
                "serp_features": ["featured_snippet"],
            },
            {
                "type": "organic",
                "keyword": "trail shoes",
                "items": [{"domain": "other.com", "position": 1}],
                "serp_features": [],
                "keyword_difficulty": 20,
            },
            {"type": "maps", "keyword": "shoe store near me", "items": []},
        ]

        report = serp_competitor_visibility(serp_data, ["nike.com"])

        nike = report["competitor_performance"][0]
        assert nike["total_appearances"] == 1
        assert nike["average_position"] == 1.0
        assert nike["top_positions"] == 1
        assert nike["featured_snippets"] == 1
        assert nike["keywords_covered"] == ["running shoes"]
        assert nike["missed_opportunities"] == ["trail shoes"]
        assert [o["keyword"] for o in report["keyword_opportunities"]] == ["trail shoes"]
        assert report["overview"]["average_competitor_visibility"] == 50.0
        assert report["serp_feature_opportunities"] == [
            {"feature": "featured_snippet", "keywords": ["running shoes"]}
        ]


# ===========================================================================
# Seasonality
# ===========================================================================
class TestSeasonality:

    def test_single_peak_month(self):
        report = analyze_seasonality([100] * 11 + [1000])
        assert report.seasonality == "high"
        assert report.peak_months == [12]
        assert report.trend_direction == "increasing"

    def test_flat_series(self):
        report = analyze_seasonality([500] * 12)
        assert report.seasonality == "low"
        assert report.peak_months == []
        assert report.trend_direction == "stable"

    def test_empty_and_zero_series(self):
        assert analyze_seasonality([]).seasonality == "low"
        assert analyze_seasonality([0, 0, 0]).coefficient_of_variation == 0.0

    def test_peaks_use_calendar_months(self):
        volumes, months = ordered_monthly_volumes([
            {"year": 2025, "month": 1, "search_volume": 100},
            {"year": 2024, "month": 12, "search_volume": 900},
            {"year": 2024, "month": 11, "search_volume": 100},
        ])
        assert volumes == [100.0, 900.0, 100.0]
        assert months == [11, 12, 1]
        assert analyze_seasonality(volumes, months=months).peak_months == [12]

"""Tests for prompt templates and prompt building."""

import json

import pytest

from seo_research.errors import ValidationError
from seo_research.modules.summarization.templates import (
    ANALYSIS_TYPES,
    BASE_SYSTEM_PROMPT,
    PromptTemplate,
    PromptTemplateEngine,
    build_analysis_prompt,
    preference_lines,
    system_prompt_for,
)


@pytest.fixture()
def engine():
    return PromptTemplateEngine()


# ===========================================================================
# Catalogue
# ===========================================================================
class TestCatalogue:

    def test_built_in_templates(self, engine):
        ids = {t.id for t in engine.list_templates()}
        assert ids == {
            "keyword_opportunity_analysis",
            "competitor_gap_analysis",
            "serp_feature_optimization",
            "serp_comprehensive_analysis",
            "content_strategy_plan",
            "seasonal_trend_analysis",
            "local_seo_strategy",
        }

    def test_every_template_uses_known_analysis_type(self, engine):
        for template in engine.list_templates():
            assert template.analysis_type in ANALYSIS_TYPES

    def test_declared_variables_match_placeholders(self, engine):
        for template in engine.list_templates():
            for name in template.variables:
                assert "{{" + name + "}}" in template.prompt

    def test_by_category(self, engine):
        assert [t.id for t in engine.templates_by_category("local_seo")] == ["local_seo_strategy"]
        assert {t.id for t in engine.templates_by_category("serp_analysis")} == {
            "serp_feature_optimization", "serp_comprehensive_analysis",
        }
        assert engine.templates_by_category("nonexistent") == []

    def test_unknown_template(self, engine):
        with pytest.raises(ValidationError, match="Unknown prompt template"):
            engine.get_template("nope")


# ===========================================================================
# Rendering
# ===========================================================================
class TestRender:

    def test_render_substitutes_and_encodes(self, engine):
        prompt = engine.render("seasonal_trend_analysis", {
            "industry": "running gear",
            "seasonal_trends": [{"keyword": "marathon shoes", "peak_months": [4, 10]}],
        })
        assert "running gear" in prompt
        assert json.dumps([{"keyword": "marathon shoes", "peak_months": [4, 10]}], indent=2) in prompt
        assert "{{" not in prompt

    def test_render_lists_every_missing_variable(self, engine):
        with pytest.raises(ValidationError) as exc_info:
            engine.render("local_seo_strategy", {"target_keywords": ["plumber"]})
        assert exc_info.value.missing == ["business_location", "local_results"]

    def test_none_counts_as_missing(self, engine):
        with pytest.raises(ValidationError):
            engine.render("seasonal_trend_analysis", {"industry": None, "seasonal_trends": []})

    def test_validate_variables_reports_extras(self, engine):
        report = engine.validate_variables("seasonal_trend_analysis", {
            "industry": "x",
            "seasonal_trends": [],
            "tone": "casual",
        })
        assert report == {"missing": [], "extra": ["tone"]}

    def test_custom_template(self):
        engine = PromptTemplateEngine([PromptTemplate(
            id="custom",
            name="Custom",
            description="",
            category="misc",
            analysis_type="keyword_analysis",
            prompt="Keywords: {{ keywords }}",
            variables=("keywords",),
        )])
        assert engine.render("custom", {"keywords": "a, b"}) == "Keywords: a, b"


# ===========================================================================
# Generic prompts
# ===========================================================================
class TestPromptBuilding:

    def test_system_prompt_adds_focus(self):
        prompt = system_prompt_for("trend_analysis")
        assert prompt.startswith(BASE_SYSTEM_PROMPT)
        assert "seasonal patterns" in prompt
        assert system_prompt_for("unknown") == BASE_SYSTEM_PROMPT

    def test_build_analysis_prompt(self):
        prompt = build_analysis_prompt(
            "keyword_analysis",
            {"keywords": ["running shoes"]},
            context={"industry": "retail", "competitor_domains": ["nike.com", "adidas.com"]},
            options={"tone": "technical"},
        )
        assert prompt.startswith("Please analyse the following keyword analysis data:")
        assert "- Industry: retail" in prompt
        assert "- Key competitors: nike.com, adidas.com" in prompt
        assert "- Tone: technical" in prompt
        assert "- Quick wins (low competition, decent volume)" in prompt

    def test_preference_lines_empty(self):
        assert preference_lines() == []
        assert preference_lines({}, {}) == []

    def test_preference_lines(self):
        lines = preference_lines(
            {"target_audience": "runners", "business_goals": ["leads", "sales"]},
            {"length": "brief", "focus": ["local"]},
        )
        assert lines == [
            "Context:",
            "- Target audience: runners",
            "- Business goals: leads, sales",
            "",
            "Analysis preferences:",
            "- Detail level: brief",
            "- Focus areas: local",
            "",
        ]

"""Prompt templates for the summarization backend and the code that renders them."""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from seo_research.errors import ValidationError

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

ANALYSIS_TYPES = (
    "keyword_analysis",
    "competitor_analysis",
    "content_strategy",
    "serp_analysis",
    "trend_analysis",
)

BASE_SYSTEM_PROMPT = """You are an expert SEO analyst and digital marketing strategist. \
Analyse the data you are given and produce clear, actionable findings.

Always respond with valid JSON in exactly this shape:
{
  "summary": "Brief overview of the analysis",
  "insights": ["Key insight", "..."],
  "recommendations": [
    {
      "title": "Recommendation title",
      "description": "Detailed explanation",
      "priority": "high|medium|low",
      "effort": "quick|moderate|significant",
      "impact": "high|medium|low"
    }
  ],
  "keyMetrics": [
    {"metric": "Metric name", "value": "Value with units", "trend": "up|down|stable", "context": "Meaning"}
  ],
  "nextSteps": ["Action item", "..."]
}"""

SYSTEM_PROMPT_FOCUS = {
    "keyword_analysis": (
        "Focus on keyword opportunities, search volume trends, competition and content gaps. "
        "Weigh search intent, seasonality and keyword difficulty."
    ),
    "competitor_analysis": (
        "Analyse competitor strategies, market positioning, content gaps and the openings "
        "that would let the target outrank them."
    ),
    "content_strategy": (
        "Recommend content types, topics and optimisation work grounded in keyword data, "
        "user intent and the competitive landscape."
    ),
    "serp_analysis": (
        "Analyse SERP features and ranking patterns. Concentrate on featured snippets, "
        "local results and SERP feature optimisation."
    ),
    "trend_analysis": (
        "Identify seasonal patterns and emerging opportunities, with timing recommendations "
        "for strategic planning."
    ),
}

PROMPT_FOCUS = {
    "keyword_analysis": [
        "Keyword difficulty and competition levels",
        "Search volume trends and seasonality",
        "User intent",
        "Quick wins (low competition, decent volume)",
        "Long-tail potential",
    ],
    "competitor_analysis": [
        "Competitor strengths and weaknesses",
        "Market share",
        "Keywords competitors are missing",
        "Positioning opportunities",
    ],
    "content_strategy": [
        "Content formats",
        "Topic clusters and pillar pages",
        "Content calendar",
        "Distribution",
    ],
    "serp_analysis": [
        "SERP feature opportunities",
        "Featured snippet potential",
        "Local SEO opportunities",
        "Mobile vs desktop differences",
    ],
    "trend_analysis": [
        "Seasonal patterns and timing",
        "Emerging keywords and topics",
        "Market shifts",
    ],
}


def system_prompt_for(analysis_type: str) -> str:
    focus = SYSTEM_PROMPT_FOCUS.get(analysis_type)
    return f"{BASE_SYSTEM_PROMPT}\n\n{focus}" if focus else BASE_SYSTEM_PROMPT


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


def preference_lines(
    context: Optional[dict[str, Any]] = None,
    options: Optional[dict[str, Any]] = None,
) -> list[str]:
    """Context and analysis-preference sections shared by every prompt."""
    context = context or {}
    context_lines = []
    if context.get("industry"):
        context_lines.append(f"- Industry: {context['industry']}")
    if context.get("target_audience"):
        context_lines.append(f"- Target audience: {context['target_audience']}")
    if context.get("business_goals"):
        context_lines.append(f"- Business goals: {', '.join(context['business_goals'])}")
    if context.get("competitor_domains"):
        context_lines.append(f"- Key competitors: {', '.join(context['competitor_domains'])}")

    options = options or {}
    option_lines = []
    if options.get("tone"):
        option_lines.append(f"- Tone: {options['tone']}")
    if options.get("length"):
        option_lines.append(f"- Detail level: {options['length']}")
    if options.get("focus"):
        option_lines.append(f"- Focus areas: {', '.join(options['focus'])}")

    lines: list[str] = []
    if context_lines:
        lines += ["Context:", *context_lines, ""]
    if option_lines:
        lines += ["Analysis preferences:", *option_lines, ""]
    return lines


def build_analysis_prompt(
    analysis_type: str,
    data: Any,
    context: Optional[dict[str, Any]] = None,
    options: Optional[dict[str, Any]] = None,
) -> str:
    """Free-form prompt used when a request names no template."""
    lines = [f"Please analyse the following {analysis_type.replace('_', ' ')} data:", ""]
    lines += [f"Data: {_to_text(data)}", ""]
    lines += preference_lines(context, options)

    focus = PROMPT_FOCUS.get(analysis_type)
    if focus:
        lines += ["Please focus on:", *(f"- {item}" for item in focus)]
    return "\n".join(lines).rstrip()


@dataclass(frozen=True)
class PromptTemplate:
    """A named prompt with ``{{variable}}`` placeholders."""

    id: str
    name: str
    description: str
    category: str
    analysis_type: str
    prompt: str
    variables: tuple[str, ...]
    output_format: dict[str, str] = field(default_factory=dict)


PROMPT_TEMPLATES: tuple[PromptTemplate, ...] = (
    PromptTemplate(
        id="keyword_opportunity_analysis",
        name="Keyword Opportunity Analysis",
        description="Prioritise discovered keywords by opportunity, intent and seasonality.",
        category="keyword_research",
        analysis_type="keyword_analysis",
        prompt="""Review the keyword research below and identify the best opportunities.

Seed keywords: {{seed_keywords}}
Filters applied: {{filters}}

Keyword data (with intent, trend and opportunity score):
{{keyword_data}}

Seasonality per keyword:
{{seasonal_trends}}

Cover:
1. The ten keywords with the best effort-to-return ratio, and why.
2. Clusters of keywords that one page could target together.
3. Intent mix and what content formats it implies.
4. Seasonal timing for publishing or refreshing content.
5. Keywords to deprioritise despite high volume.""",
        variables=("seed_keywords", "filters", "keyword_data", "seasonal_trends"),
        output_format={"summary": "string", "insights": "string[]", "recommendations": "object[]"},
    ),
    PromptTemplate(
        id="competitor_gap_analysis",
        name="Competitor Gap Analysis",
        description="Explain where competitors win and which gaps the target should close first.",
        category="competitor_research",
        analysis_type="competitor_analysis",
        prompt="""Compare {{target_domain}} against its competitors.

Target profile:
{{target_profile}}

Competitor profiles:
{{competitor_profiles}}

Keyword gap analysis:
{{gap_analysis}}

Market overview:
{{market_overview}}

Cover:
1. Where each competitor is structurally stronger.
2. The keyword gaps most worth closing, grouped by topic.
3. Advantages the target should defend.
4. A 90-day plan ordered by expected impact.""",
        variables=("target_domain", "target_profile", "competitor_profiles", "gap_analysis", "market_overview"),
        output_format={"summary": "string", "insights": "string[]", "recommendations": "object[]"},
    ),
    PromptTemplate(
        id="serp_feature_optimization",
        name="SERP Feature Optimization",
        description="Find SERP features the target can win and how to format content for them.",
        category="serp_analysis",
        analysis_type="serp_analysis",
        prompt="""Analyse the search result pages for these keywords: {{target_keywords}}

Organic SERP data (features, content types, difficulty):
{{serp_data}}

Local pack results:
{{local_results}}

Cover:
1. SERP features present per keyword and which are realistically winnable.
2. Content structure changes for featured snippets and People Also Ask.
3. Local pack opportunities where local results exist.
4. Keywords where the SERP layout suppresses organic clicks.""",
        variables=("target_keywords", "serp_data", "local_results"),
        output_format={"summary": "string", "insights": "string[]", "recommendations": "object[]"},
    ),
    PromptTemplate(
        id="serp_comprehensive_analysis",
        name="Comprehensive SERP Analysis",
        description="Combine SERP features, difficulty and competitor visibility into one plan.",
        category="serp_analysis",
        analysis_type="serp_analysis",
        prompt="""Produce a complete SERP assessment for: {{target_keywords}}

SERP data:
{{serp_data}}

Competitor visibility on these SERPs:
{{competitor_analysis}}

Cover ranking difficulty, dominant content types, SERP feature opportunities and
the competitors to displace first.""",
        variables=("target_keywords", "serp_data", "competitor_analysis"),
        output_format={"summary": "string", "insights": "string[]", "recommendations": "object[]"},
    ),
    PromptTemplate(
        id="content_strategy_plan",
        name="Content Strategy Plan",
        description="Turn keyword data into a content plan for a given audience.",
        category="content_strategy",
        analysis_type="content_strategy",
        prompt="""Build a content strategy from this keyword data:
{{keyword_data}}

Target audience: {{target_audience}}
Business goals: {{business_goals}}

Propose pillar pages, supporting articles, formats and a publishing order.""",
        variables=("keyword_data", "target_audience", "business_goals"),
        output_format={"summary": "string", "insights": "string[]", "recommendations": "object[]"},
    ),
    PromptTemplate(
        id="seasonal_trend_analysis",
        name="Seasonal Trend Analysis",
        description="Plan campaign timing around keyword seasonality.",
        category="trend_analysis",
        analysis_type="trend_analysis",
        prompt="""Industry: {{industry}}

Seasonality per keyword (label, peak months, direction):
{{seasonal_trends}}

Identify the seasonal windows that matter, when to start preparing content for
each, and which keywords are trending up or down year over year.""",
        variables=("industry", "seasonal_trends"),
        output_format={"summary": "string", "insights": "string[]", "recommendations": "object[]"},
    ),
    PromptTemplate(
        id="local_seo_strategy",
        name="Local SEO Strategy",
        description="Recommend local visibility work from maps and local pack results.",
        category="local_seo",
        analysis_type="serp_analysis",
        prompt="""Business location: {{business_location}}
Target keywords: {{target_keywords}}

Local pack and maps results:
{{local_results}}

Recommend profile, review, citation and on-page work to reach the local pack.""",
        variables=("business_location", "target_keywords", "local_results"),
        output_format={"summary": "string", "insights": "string[]", "recommendations": "object[]"},
    ),
)


class PromptTemplateEngine:
    """Look up and render :class:`PromptTemplate` objects.

    Usage::

        engine = PromptTemplateEngine()
        prompt = engine.render("keyword_opportunity_analysis", variables)
    """

    def __init__(self, templates: Iterable[PromptTemplate] = PROMPT_TEMPLATES):
        self._templates = {template.id: template for template in templates}

    def get_template(self, template_id: str) -> PromptTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise ValidationError(f"Unknown prompt template: {template_id!r}")
        return template

    def list_templates(self) -> list[PromptTemplate]:
        return list(self._templates.values())

    def templates_by_category(self, category: str) -> list[PromptTemplate]:
        return [t for t in self._templates.values() if t.category == category]

    def validate_variables(self, template_id: str, variables: dict[str, Any]) -> dict[str, list[str]]:
        """Declared-but-missing and provided-but-undeclared variable names."""
        template = self.get_template(template_id)
        declared = set(template.variables) | set(PLACEHOLDER.findall(template.prompt))
        missing = sorted(name for name in declared if variables.get(name) is None)
        extra = sorted(name for name in variables if name not in declared)
        return {"missing": missing, "extra": extra}

    def render(self, template_id: str, variables: dict[str, Any]) -> str:
        """Substitute every placeholder; non-string values are JSON-encoded.

        Raises:
            ValidationError: unknown template, or any placeholder without a value.
        """
        missing = self.validate_variables(template_id, variables)["missing"]
        if missing:
            raise ValidationError(
                f"Template {template_id!r} is missing variables: {', '.join(missing)}",
                missing=missing,
            )
        template = self._templates[template_id]
        return PLACEHOLDER.sub(lambda match: _to_text(variables[match.group(1)]), template.prompt)

"""Research module -- one workflow controller per query type."""

from seo_research.modules.research.base import ResearchWorkflow, WorkflowSettings
from seo_research.modules.research.competitor_research import CompetitorResearchWorkflow
from seo_research.modules.research.keyword_discovery import KeywordDiscoveryWorkflow
from seo_research.modules.research.serp_analysis import SerpAnalysisWorkflow

__all__ = [
    "CompetitorResearchWorkflow",
    "KeywordDiscoveryWorkflow",
    "ResearchWorkflow",
    "SerpAnalysisWorkflow",
    "WorkflowSettings",
]

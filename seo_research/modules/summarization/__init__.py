"""Summarization module -- prompt templates and the LLM job queue."""

from seo_research.modules.summarization.job_queue import (
    SummarizationJob,
    SummarizationJobQueue,
    SummarizationRequest,
)
from seo_research.modules.summarization.templates import PromptTemplate, PromptTemplateEngine

__all__ = [
    "PromptTemplate",
    "PromptTemplateEngine",
    "SummarizationJob",
    "SummarizationJobQueue",
    "SummarizationRequest",
]

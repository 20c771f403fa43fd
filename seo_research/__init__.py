"""SEO Research Orchestrator -- keyword, SERP and competitor research on a task-based provider API."""

__version__ = "1.0.0"

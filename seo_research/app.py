"""Application wiring for the SEO research orchestrator."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from sqlalchemy import inspect

from seo_research.database import get_engine, init_db
from seo_research.integrations.keywords_api import KeywordsAdapter
from seo_research.integrations.labs_api import LabsAdapter
from seo_research.integrations.llm_client import LLMClient
from seo_research.integrations.serp_api import SerpAdapter
from seo_research.integrations.task_client import DEFAULT_BASE_URL, TaskClient
from seo_research.models import QueryType
from seo_research.modules.orchestration.task_orchestrator import TaskOrchestrator
from seo_research.modules.research.base import WorkflowSettings
from seo_research.modules.summarization.job_queue import SummarizationJobQueue
from seo_research.scheduler import ResearchScheduler
from seo_research.store import ResearchStore
from seo_research.utils.rate_limiter import RateLimiter
from seo_research.workflows import WORKFLOW_CLASSES, WorkflowEngine

logger = logging.getLogger(__name__)


class ResearchPortal:
    """Central application class that builds and owns every component.

    Usage::

        portal = ResearchPortal()
        portal.initialize()
        await portal.start()
        query_id = await portal.engine.start("serp_analysis", {"keywords": ["running shoes"]}, "user-1")
        await portal.shutdown()
    """

    def __init__(
        self,
        config_path: str = "config/settings.yaml",
        env_path: str = ".env",
        config: Optional[dict[str, Any]] = None,
    ):
        self._config_path = config_path
        self._env_path = env_path
        self.config: dict[str, Any] = config or {}
        self._config_given = config is not None
        self._initialized = False

        self.client: Optional[TaskClient] = None
        self.orchestrator: Optional[TaskOrchestrator] = None
        self.llm: Optional[LLMClient] = None
        self.summaries: Optional[SummarizationJobQueue] = None
        self.store: Optional[ResearchStore] = None
        self.engine: Optional[WorkflowEngine] = None
        self.scheduler: Optional[ResearchScheduler] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Load environment and configuration, initialise the DB and build components."""
        if self._initialized:
            return

        env_file = Path(self._env_path)
        if env_file.exists():
            load_dotenv(env_file)
            logger.info("Loaded environment from %s", self._env_path)

        if not self._config_given:
            self.config = self._load_config()

        data_dir = self.config.get("app", {}).get("data_dir")
        if data_dir:
            Path(data_dir).mkdir(parents=True, exist_ok=True)

        db_cfg = self.config.get("database", {})
        init_db(database_url=db_cfg.get("url"), echo=db_cfg.get("echo", False))

        self.client = self._build_task_client()
        self.orchestrator = TaskOrchestrator(
            self.client,
            self._build_rate_limiter(),
            [SerpAdapter(), KeywordsAdapter(), LabsAdapter()],
        )
        self.llm = self._build_llm_client()
        self.summaries = SummarizationJobQueue(self.llm)
        self.store = ResearchStore()
        self.engine = WorkflowEngine(
            self.store, self.orchestrator, self.summaries, settings=self._workflow_settings()
        )
        self.scheduler = ResearchScheduler(
            timezone=self.config.get("scheduler", {}).get("timezone", "UTC")
        )

        self._initialized = True
        logger.info("ResearchPortal initialised.")

    async def start(self) -> None:
        """Register maintenance jobs and start the scheduler on the running loop."""
        self._ensure_initialized()
        orch_cfg = self.config.get("orchestrator", {})
        self.scheduler.register_maintenance(
            self.orchestrator,
            self.summaries,
            sweep_interval=orch_cfg.get("sweep_interval_seconds", 30),
            eviction_interval=orch_cfg.get("eviction_interval_seconds", 3600),
            task_retention_hours=orch_cfg.get("task_retention_hours", 24),
            job_retention_hours=orch_cfg.get("job_retention_hours", 48),
        )
        self.scheduler.start()

    async def shutdown(self) -> None:
        """Stop the scheduler, cancel background work and close the HTTP client."""
        if not self._initialized:
            return
        self.scheduler.stop()
        await self.engine.shutdown()
        await self.summaries.close()
        await self.client.close()
        logger.info("ResearchPortal shut down.")

    def _load_config(self) -> dict[str, Any]:
        config_file = Path(self._config_path)
        if not config_file.exists():
            logger.warning("Config file not found: %s -- using defaults.", self._config_path)
            return {}
        with open(config_file, "r", encoding="utf-8") as fh:
            config = yaml.safe_load(fh) or {}
        logger.info("Configuration loaded from %s", self._config_path)
        return config

    # ------------------------------------------------------------------
    # Component builders
    # ------------------------------------------------------------------

    def _build_task_client(self) -> TaskClient:
        provider = self.config.get("provider", {})
        return TaskClient(
            base_url=provider.get("base_url", DEFAULT_BASE_URL),
            timeout=provider.get("timeout", 30),
            success_code=provider.get("success_code", 20000),
            error_threshold=provider.get("error_threshold", 40000),
            pending_codes=provider.get("pending_codes") or (),
        )

    def _build_rate_limiter(self) -> RateLimiter:
        limits = self.config.get("rate_limits", {}).get("dataforseo", {})
        return RateLimiter(
            requests_per_minute=limits.get("requests_per_minute", 30),
            requests_per_hour=limits.get("requests_per_hour", 1500),
            name="dataforseo",
        )

    def _build_llm_client(self) -> LLMClient:
        llm_cfg = self.config.get("llm", {})
        primary = llm_cfg.get("primary", {})
        fallback = llm_cfg.get("fallback", {})
        cache_cfg = llm_cfg.get("cache", {})
        budget_cfg = llm_cfg.get("budget", {})
        rl_cfg = self.config.get("rate_limits", {})
        return LLMClient(
            openai_model=primary.get("model", "gpt-4-turbo-preview"),
            gemini_model=fallback.get("model", "gemini-2.0-flash"),
            max_tokens=primary.get("max_tokens", 2500),
            temperature=primary.get("temperature", 0.7),
            timeout=primary.get("timeout", 60),
            openai_rpm=rl_cfg.get("openai", {}).get("requests_per_minute", 60),
            gemini_rpm=rl_cfg.get("gemini", {}).get("requests_per_minute", 15),
            cache_enabled=cache_cfg.get("enabled", True),
            cache_ttl_hours=cache_cfg.get("ttl_hours", 24),
            cache_max_size=cache_cfg.get("max_size", 1000),
            max_monthly_budget=budget_cfg.get("max_monthly_usd", 100.0),
            budget_warning_pct=budget_cfg.get("warning_threshold_pct", 80.0),
        )

    def _workflow_settings(self) -> dict[QueryType, WorkflowSettings]:
        workflows_cfg = self.config.get("workflows", {})
        return {
            query_type: WorkflowSettings.from_config(workflows_cfg.get(query_type.value), cls.default_settings)
            for query_type, cls in WORKFLOW_CLASSES.items()
        }

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> dict[str, dict[str, Any]]:
        """Return health status of all major components."""
        self._ensure_initialized()
        status: dict[str, dict[str, Any]] = {}

        try:
            tables = inspect(get_engine()).get_table_names()
            status["database"] = {"status": "ok", "details": f"{len(tables)} tables"}
        except Exception as exc:
            status["database"] = {"status": "error", "details": str(exc)}

        jobs = self.scheduler.list_jobs()
        status["scheduler"] = {
            "status": "ok" if self.scheduler.is_running else "warning",
            "details": f"{'running' if self.scheduler.is_running else 'stopped'}, {len(jobs)} jobs",
        }

        provider_configured = bool(os.getenv("DATAFORSEO_LOGIN") and os.getenv("DATAFORSEO_PASSWORD"))
        orch_stats = self.orchestrator.stats()
        status["provider"] = {
            "status": "ok" if provider_configured else "warning",
            "details": (
                f"{'credentials set' if provider_configured else 'credentials missing'}, "
                f"{orch_stats['total']} tasks tracked, cost {orch_stats['total_cost']}"
            ),
        }

        providers = []
        if os.getenv("OPENAI_API_KEY"):
            providers.append("OpenAI")
        if os.getenv("GEMINI_API_KEY"):
            providers.append("Gemini")
        status["llm"] = {
            "status": "ok" if providers else "warning",
            "details": f"providers: {', '.join(providers) or 'none configured'}",
        }

        status["summaries"] = {"status": "ok", "details": f"{len(self.summaries)} jobs tracked"}

        status["config"] = {
            "status": "ok" if self.config else "warning",
            "details": f"{len(self.config)} sections loaded" if self.config else "no config",
        }
        return status

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Call initialize() before using the application.")

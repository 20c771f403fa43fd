"""Integration tests for the SEO research orchestrator.

Covers database setup, module imports, application wiring, the
maintenance scheduler, configuration loading, CLI smoke tests, and
syntax validation of every Python file in the project.
"""

import ast
import importlib
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Project root (conftest.py already puts it on sys.path)
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent

MEMORY_CONFIG = {
    "app": {"name": "seo-research-orchestrator"},
    "database": {"url": "sqlite:///:memory:", "echo": False},
    "provider": {"base_url": "https://api.example.test", "pending_codes": [40601]},
    "rate_limits": {"dataforseo": {"requests_per_minute": 5, "requests_per_hour": 100}},
    "orchestrator": {"sweep_interval_seconds": 5, "eviction_interval_seconds": 60},
    "workflows": {"competitor_research": {"timeout_seconds": 42}},
}


# ===========================================================================
# 1. Database setup
# ===========================================================================
class TestDatabaseSetup:
    """Verify that the database can be initialised with in-memory SQLite."""

    def test_init_db_creates_tables(self, test_db):
        """init_db with in-memory SQLite should create all expected tables."""
        from seo_research.database import get_engine
        from sqlalchemy import inspect

        table_names = inspect(get_engine()).get_table_names()
        for table in ("research_queries", "research_tasks", "research_datasets", "research_insights"):
            assert table in table_names, "Missing table: " + table + ". Found: " + str(table_names)

    def test_get_session_context_manager(self, test_db):
        """get_session should yield a usable Session object."""
        from seo_research.database import get_session
        from sqlalchemy import text as sa_text

        with get_session() as session:
            row = session.execute(sa_text("SELECT 1")).fetchone()
            assert row[0] == 1


# ===========================================================================
# 2. Model and module imports
# ===========================================================================
class TestImports:

    @pytest.mark.parametrize("model_name", ["Query", "Task", "Dataset", "Insight", "QueryType", "Status"])
    def test_model_importable(self, model_name):
        models = importlib.import_module("seo_research.models")
        assert hasattr(models, model_name)

    @pytest.mark.parametrize("module_path,class_names", [
        ("seo_research.integrations.task_client", ["TaskClient", "ProviderResponse"]),
        ("seo_research.integrations.serp_api", ["SerpAdapter"]),
        ("seo_research.integrations.keywords_api", ["KeywordsAdapter"]),
        ("seo_research.integrations.labs_api", ["LabsAdapter"]),
        ("seo_research.integrations.llm_client", ["LLMClient"]),
        ("seo_research.modules.orchestration.task_orchestrator", ["TaskOrchestrator"]),
        ("seo_research.modules.summarization.job_queue", ["SummarizationJobQueue"]),
        ("seo_research.modules.summarization.templates", ["PromptTemplateEngine"]),
        ("seo_research.modules.research", [
            "KeywordDiscoveryWorkflow", "SerpAnalysisWorkflow", "CompetitorResearchWorkflow",
        ]),
        ("seo_research.workflows", ["WorkflowEngine"]),
        ("seo_research.scheduler", ["ResearchScheduler"]),
        ("seo_research.app", ["ResearchPortal"]),
    ])
    def test_module_importable(self, module_path, class_names):
        module = importlib.import_module(module_path)
        for class_name in class_names:
            assert hasattr(module, class_name), module_path + " has no " + class_name


# ===========================================================================
# 3. Application wiring
# ===========================================================================
class TestResearchPortal:

    def test_initialize_from_config_dict(self, monkeypatch, tmp_path):
        from seo_research.app import ResearchPortal
        from seo_research.models import QueryType

        monkeypatch.delenv("DATAFORSEO_LOGIN", raising=False)
        monkeypatch.delenv("DATAFORSEO_PASSWORD", raising=False)
        portal = ResearchPortal(env_path=str(tmp_path / "missing.env"), config=dict(MEMORY_CONFIG))
        portal.initialize()

        assert portal.client.pending_codes == frozenset({40601})
        assert portal.engine.controller(QueryType.COMPETITOR_RESEARCH).settings.timeout_seconds == 42
        assert portal.engine.controller(QueryType.COMPETITOR_RESEARCH).settings.poll_interval_seconds == 15
        assert portal.engine.controller(QueryType.SERP_ANALYSIS).settings.timeout_seconds == 600

        status = portal.get_status()
        assert status["database"]["status"] == "ok"
        assert status["provider"]["status"] == "warning"
        assert status["scheduler"]["details"].startswith("stopped")
        assert set(status) == {"database", "scheduler", "provider", "llm", "summaries", "config"}

    def test_missing_config_file_uses_defaults(self, tmp_path, monkeypatch):
        from seo_research.app import ResearchPortal

        monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
        portal = ResearchPortal(config_path=str(tmp_path / "nope.yaml"), env_path=str(tmp_path / ".env"))
        portal.initialize()
        assert portal.config == {}
        assert portal.get_status()["config"]["status"] == "warning"

    def test_uninitialized_portal_raises(self):
        from seo_research.app import ResearchPortal

        with pytest.raises(RuntimeError):
            ResearchPortal(config=dict(MEMORY_CONFIG)).get_status()

    @pytest.mark.asyncio
    async def test_start_registers_maintenance_jobs(self, tmp_path):
        from seo_research.app import ResearchPortal

        portal = ResearchPortal(env_path=str(tmp_path / ".env"), config=dict(MEMORY_CONFIG))
        portal.initialize()
        await portal.start()
        try:
            assert portal.scheduler.is_running
            assert {job["id"] for job in portal.scheduler.list_jobs()} == {
                "task_sweep", "task_eviction", "summary_eviction",
            }
        finally:
            await portal.shutdown()
        assert not portal.scheduler.is_running


# ===========================================================================
# 4. Scheduler
# ===========================================================================
class TestScheduler:

    def test_rejects_non_positive_interval(self):
        from seo_research.scheduler import ResearchScheduler

        with pytest.raises(ValueError):
            ResearchScheduler().add_interval_job("bad", lambda: None, 0)

    @pytest.mark.asyncio
    async def test_add_list_and_remove_jobs(self):
        from seo_research.scheduler import ResearchScheduler

        scheduler = ResearchScheduler()
        scheduler.start()
        try:
            scheduler.add_interval_job("heartbeat", lambda: None, 30)
            scheduler.add_interval_job("heartbeat", lambda: None, 60)
            jobs = scheduler.list_jobs()
            assert [job["id"] for job in jobs] == ["heartbeat"]
            assert "0:01:00" in jobs[0]["trigger"]
            assert jobs[0]["next_run_time"] is not None

            assert scheduler.remove_job("heartbeat") is True
            assert scheduler.remove_job("heartbeat") is False
        finally:
            scheduler.stop()


# ===========================================================================
# 5. Settings YAML
# ===========================================================================
class TestSettingsYaml:
    """Configuration file should be loadable."""

    def _load(self):
        import yaml
        with open(PROJECT_ROOT / "config" / "settings.yaml") as fh:
            return yaml.safe_load(fh)

    def test_settings_has_required_sections(self):
        config = self._load()
        for section in ("app", "database", "provider", "rate_limits", "orchestrator", "workflows", "llm"):
            assert section in config, "Missing config section: " + section

    def test_workflow_budgets(self):
        workflows = self._load()["workflows"]
        assert workflows["keyword_discovery"]["timeout_seconds"] == 600
        assert workflows["competitor_research"]["timeout_seconds"] == 900
        assert workflows["competitor_research"]["poll_interval_seconds"] == 15


# ===========================================================================
# 6. CLI commands (smoke test via CliRunner)
# ===========================================================================
class TestCLICommands:

    def _get_runner_and_app(self):
        from typer.testing import CliRunner
        from seo_research.cli import app
        return CliRunner(), app

    def _memory_config(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(
            "database:\n  url: 'sqlite:///:memory:'\nprovider:\n  base_url: https://api.example.test\n",
            encoding="utf-8",
        )
        return str(config_file)

    def test_main_help(self):
        runner, cli_app = self._get_runner_and_app()
        result = runner.invoke(cli_app, ["--help"])
        assert result.exit_code == 0
        assert "SEO research orchestrator" in result.output

    @pytest.mark.parametrize("command", ["keywords", "serp", "competitors", "templates", "show", "status"])
    def test_command_help(self, command):
        runner, cli_app = self._get_runner_and_app()
        result = runner.invoke(cli_app, [command, "--help"])
        assert result.exit_code == 0, (
            "Command '" + command + "' --help failed with exit code "
            + str(result.exit_code) + ": " + result.output
        )

    def test_templates_by_category(self):
        runner, cli_app = self._get_runner_and_app()
        result = runner.invoke(cli_app, ["templates", "--category", "local_seo"])
        assert result.exit_code == 0
        assert "local_seo_strategy" in result.output
        assert "keyword_opportunity_analysis" not in result.output

    def test_invalid_keywords_exit_code(self, tmp_path):
        runner, cli_app = self._get_runner_and_app()
        result = runner.invoke(cli_app, ["keywords", "a,b,c,d,e,f", "--config", self._memory_config(tmp_path)])
        assert result.exit_code == 2
        assert "Invalid parameters" in result.output

    def test_show_lists_queries(self, tmp_path):
        runner, cli_app = self._get_runner_and_app()
        result = runner.invoke(cli_app, ["show", "--config", self._memory_config(tmp_path)])
        assert result.exit_code == 0
        assert "Recent Queries" in result.output

    def test_show_unknown_query(self, tmp_path):
        runner, cli_app = self._get_runner_and_app()
        result = runner.invoke(cli_app, ["show", "missing", "--config", self._memory_config(tmp_path)])
        assert result.exit_code == 1


# ===========================================================================
# 7. All Python files syntax validation
# ===========================================================================
class TestAllPythonFilesSyntax:
    """Every .py file in seo_research/ and tests/ should pass ast.parse."""

    def _collect_python_files(self):
        files = []
        for directory in ("seo_research", "tests"):
            base = PROJECT_ROOT / directory
            if base.exists():
                for py_file in base.rglob("*.py"):
                    if "__pycache__" in py_file.parts:
                        continue
                    files.append(py_file)
        return sorted(files)

    def test_all_python_files_parse(self):
        py_files = self._collect_python_files()
        assert len(py_files) > 0, "No Python files found"
        errors = []
        for py_file in py_files:
            try:
                ast.parse(py_file.read_text(encoding="utf-8"))
            except SyntaxError as exc:
                errors.append(str(py_file.relative_to(PROJECT_ROOT)) + ": " + str(exc))
        if errors:
            pytest.fail("Python syntax errors found in " + str(len(errors)) + " files:\n" + "\n".join(errors[:20]))


# ===========================================================================
# 8. Requirements / key packages importable
# ===========================================================================
class TestRequirementsInstallable:
    """Key packages from requirements.txt should be importable."""

    @pytest.mark.parametrize("package", [
        "typer",
        "rich",
        "sqlalchemy",
        "yaml",  # PyYAML
        "httpx",
        "openai",
        "dotenv",  # python-dotenv
        "apscheduler",
    ])
    def test_package_importable(self, package):
        importlib.import_module(package)

"""Typer CLI application for the SEO research orchestrator.

Provides commands for the three research workflows (keyword discovery,
SERP analysis and competitor research), the prompt template catalogue,
stored query lookup and a system status check.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from seo_research.errors import ResearchError, ValidationError

console = Console()
app = typer.Typer(
    name="seo-research",
    help="SEO research orchestrator -- keyword discovery, SERP analysis & competitor research.",
    add_completion=False,
    no_args_is_help=True,
)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging level and format."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context."""
    return asyncio.run(coro)


def _split(value: Optional[str]) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _get_portal(config: str):
    from seo_research.app import ResearchPortal
    portal = ResearchPortal(config_path=config)
    portal.initialize()
    return portal


def _run_query(config: str, query_type: str, params: dict[str, Any], owner: str) -> dict[str, Any]:
    """Run one query inline and return its full result."""

    async def _run():
        portal = _get_portal(config)
        try:
            return await portal.engine.run(query_type, params, owner)
        finally:
            await portal.shutdown()

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task(description="Running " + query_type.replace("_", " ") + "...", total=None)
        try:
            return _run_async(_run())
        except ValidationError as exc:
            console.print("[red]✘[/red] Invalid parameters: " + str(exc))
            raise typer.Exit(code=2)
        except ResearchError as exc:
            console.print("[red]✘[/red] " + str(exc))
            raise typer.Exit(code=1)


def _print_result(result: dict[str, Any], output: Optional[Path]) -> None:
    """Pretty-print a query result using Rich."""
    query = result["query"]
    if query["status"] == "completed":
        status_display = "[green]✔ completed[/green]"
    else:
        status_display = "[red]✘ " + query["status"] + "[/red]"
    console.print("Query [bold]" + query["id"] + "[/bold]: " + status_display)
    if query.get("error"):
        console.print("[red]" + query["error"] + "[/red]")

    table = Table(title="Provider Tasks", show_header=True, header_style="bold magenta")
    table.add_column("Kind", style="cyan", min_width=18)
    table.add_column("Status", min_width=10)
    table.add_column("Cost", justify="right")
    for task in result["tasks"]:
        table.add_row(task["kind"], task["status"], f"{task['cost'] or 0:.4f}")
    console.print(table)

    for dataset in result["datasets"]:
        data = dataset["data"]
        size = len(data) if isinstance(data, list) else len(data or {})
        console.print("Dataset [cyan]" + dataset["data_type"] + "[/cyan]: " + str(size) + " entries")

    for insight in result["insights"]:
        console.print(Panel(insight["summary"] or "", title="Insight: " + insight["analysis_type"]))
        for rec in (insight["content"] or {}).get("recommendations", [])[:5]:
            console.print("  • [" + rec["priority"] + "] " + rec["title"])

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(result, indent=2, default=str), encoding="utf-8")
        console.print("Result written to " + str(output))


def _print_keywords(result: dict[str, Any], limit: int) -> None:
    datasets = [d for d in result["datasets"] if d["data_type"] == "keyword_list"]
    if not datasets:
        return
    table = Table(title="Top Keywords", show_header=True, header_style="bold magenta")
    table.add_column("Keyword", style="cyan", min_width=30)
    table.add_column("Volume", justify="right")
    table.add_column("CPC", justify="right")
    table.add_column("Intent")
    table.add_column("Trend")
    table.add_column("Score", justify="right")
    for kw in datasets[0]["data"][:limit]:
        table.add_row(
            kw["keyword"], str(kw["search_volume"]), f"{kw['cpc']:.2f}",
            kw["intent"], kw["trend"], str(kw["opportunity_score"]),
        )
    console.print(table)


# ------------------------------------------------------------------
# keywords
# ------------------------------------------------------------------
@app.command()
def keywords(
    seed_keywords: str = typer.Argument(..., help="Comma-separated seed keywords (1-5)."),
    location: str = typer.Option("United States", "--location", help="Provider location name."),
    language: str = typer.Option("English", "--language", help="Provider language name."),
    min_volume: int = typer.Option(0, "--min-volume", help="Minimum monthly search volume."),
    max_difficulty: int = typer.Option(100, "--max-difficulty", help="Maximum keyword difficulty."),
    no_questions: bool = typer.Option(False, "--no-questions", help="Drop question keywords."),
    no_long_tail: bool = typer.Option(False, "--no-long-tail", help="Drop keywords of 3+ words."),
    depth: str = typer.Option("standard", "--depth", help="quick, standard or comprehensive."),
    owner: str = typer.Option("cli", "--owner", help="Owner id recorded on the query."),
    top: int = typer.Option(20, "--top", help="Keywords to display."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the full result as JSON."),
    config: str = typer.Option("config/settings.yaml", "--config", "-c", help="Settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Discover, filter and score keywords from seed keywords."""
    _setup_logging(verbose)
    seeds = _split(seed_keywords)
    console.print(Panel("[bold cyan]Keyword Discovery: " + ", ".join(seeds) + "[/bold cyan]"))
    result = _run_query(config, "keyword_discovery", {
        "seed_keywords": seeds,
        "location": location,
        "language": language,
        "include_questions": not no_questions,
        "include_long_tail": not no_long_tail,
        "min_search_volume": min_volume,
        "max_keyword_difficulty": max_difficulty,
        "analysis_depth": depth,
    }, owner)
    _print_keywords(result, top)
    _print_result(result, output)


# ------------------------------------------------------------------
# serp
# ------------------------------------------------------------------
@app.command()
def serp(
    keywords_arg: str = typer.Argument(..., metavar="KEYWORDS", help="Comma-separated keywords (1-10)."),
    location: str = typer.Option("United States", "--location", help="Provider location name."),
    language: str = typer.Option("English", "--language", help="Provider language name."),
    device: str = typer.Option("desktop", "--device", help="desktop or mobile."),
    analysis_type: str = typer.Option("snapshot", "--type", "-t", help="snapshot, features, competitor or comprehensive."),
    competitors: Optional[str] = typer.Option(None, "--competitors", help="Comma-separated competitor domains."),
    include_ads: bool = typer.Option(False, "--ads", help="Keep paid results."),
    include_local: bool = typer.Option(True, "--local/--no-local", help="Fetch maps results for local keywords."),
    owner: str = typer.Option("cli", "--owner", help="Owner id recorded on the query."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the full result as JSON."),
    config: str = typer.Option("config/settings.yaml", "--config", "-c", help="Settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Analyse organic and local search result pages for keywords."""
    _setup_logging(verbose)
    kw_list = _split(keywords_arg)
    console.print(Panel("[bold cyan]SERP Analysis: " + ", ".join(kw_list) + "[/bold cyan]"))
    result = _run_query(config, "serp_analysis", {
        "keywords": kw_list,
        "location": location,
        "language": language,
        "device": device,
        "include_ads": include_ads,
        "include_local": include_local,
        "analysis_type": analysis_type,
        "competitor_domains": _split(competitors),
    }, owner)
    _print_result(result, output)


# ------------------------------------------------------------------
# competitors
# ------------------------------------------------------------------
@app.command()
def competitors(
    target_domain: str = typer.Argument(..., help="Domain to research (e.g. example.com)."),
    competitor_domains: str = typer.Argument(..., help="Comma-separated competitor domains (1-10)."),
    location: str = typer.Option("United States", "--location", help="Provider location name."),
    language: str = typer.Option("English", "--language", help="Provider language name."),
    min_volume: int = typer.Option(0, "--min-volume", help="Minimum search volume of ranked keywords."),
    max_position: int = typer.Option(100, "--max-position", help="Worst ranking position kept."),
    no_branded: bool = typer.Option(False, "--no-branded", help="Drop branded keywords."),
    report_depth: str = typer.Option("overview", "--depth", help="overview, detailed or comprehensive."),
    owner: str = typer.Option("cli", "--owner", help="Owner id recorded on the query."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the full result as JSON."),
    config: str = typer.Option("config/settings.yaml", "--config", "-c", help="Settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Compare a domain's ranked keywords against its competitors."""
    _setup_logging(verbose)
    console.print(Panel("[bold cyan]Competitor Research: " + target_domain + "[/bold cyan]"))
    result = _run_query(config, "competitor_research", {
        "target_domain": target_domain,
        "competitor_domains": _split(competitor_domains),
        "location": location,
        "language": language,
        "keyword_filters": {
            "min_search_volume": min_volume,
            "max_position": max_position,
            "include_branded": not no_branded,
        },
        "report_depth": report_depth,
    }, owner)

    for dataset in result["datasets"]:
        if dataset["data_type"] != "competitor_analysis":
            continue
        gaps = dataset["data"]["gap_analysis"]["keyword_gaps"]
        table = Table(title="Keyword Gaps", show_header=True, header_style="bold magenta")
        table.add_column("Keyword", style="cyan", min_width=30)
        table.add_column("Volume", justify="right")
        table.add_column("Competitor")
        table.add_column("Position", justify="right")
        table.add_column("Opportunity")
        for gap in gaps[:20]:
            table.add_row(
                gap["keyword"], str(gap["search_volume"]), gap["competitor_domain"],
                str(gap["competitor_position"]), gap["opportunity"],
            )
        console.print(table)
    _print_result(result, output)


# ------------------------------------------------------------------
# templates
# ------------------------------------------------------------------
@app.command()
def templates(
    category: Optional[str] = typer.Option(None, "--category", help="Only templates in this category."),
) -> None:
    """List the prompt templates used for AI summaries."""
    from seo_research.modules.summarization.templates import PromptTemplateEngine

    engine = PromptTemplateEngine()
    items = engine.templates_by_category(category) if category else engine.list_templates()
    table = Table(title="Prompt Templates", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", min_width=28)
    table.add_column("Category")
    table.add_column("Analysis Type")
    table.add_column("Variables", max_width=50)
    for template in items:
        table.add_row(template.id, template.category, template.analysis_type, ", ".join(template.variables))
    console.print(table)


# ------------------------------------------------------------------
# show
# ------------------------------------------------------------------
@app.command()
def show(
    query_id: Optional[str] = typer.Argument(None, help="Query id; omit to list recent queries."),
    owner: Optional[str] = typer.Option(None, "--owner", help="Only queries of this owner."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the full result as JSON."),
    config: str = typer.Option("config/settings.yaml", "--config", "-c", help="Settings file."),
) -> None:
    """Show a stored query, or list recent queries."""
    portal = _get_portal(config)
    if query_id is None:
        table = Table(title="Recent Queries", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="cyan")
        table.add_column("Type")
        table.add_column("Status")
        table.add_column("Progress", justify="right")
        table.add_column("Created")
        for query in portal.engine.list_queries(owner):
            table.add_row(query["id"], query["type"], query["status"], str(query["progress"]), query["created_at"] or "")
        console.print(table)
        return
    result = portal.engine.get_result(query_id, owner)
    if result is None:
        console.print("[red]✘[/red] Query not found: " + query_id)
        raise typer.Exit(code=1)
    _print_result(result, output)


# ------------------------------------------------------------------
# status
# ------------------------------------------------------------------
@app.command()
def status(
    config: str = typer.Option("config/settings.yaml", "--config", "-c", help="Settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show system status: database, provider, LLM, configuration."""
    _setup_logging(verbose)
    console.print(Panel("[bold cyan]System Status[/bold cyan]"))

    table = Table(title="Component Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", min_width=20)
    table.add_column("Status", min_width=10)
    table.add_column("Details", max_width=60)

    portal = _get_portal(config)
    for name, info in portal.get_status().items():
        if info["status"] == "ok":
            status_display = "[green]✔ OK[/green]"
        elif info["status"] == "warning":
            status_display = "[yellow]⚠ Warning[/yellow]"
        else:
            status_display = "[red]✘ Error[/red]"
        table.add_row(name.title(), status_display, info["details"])
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

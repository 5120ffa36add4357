"""CLI application for DepScope."""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import Progress

from core.config import DEFAULT_CONCURRENCY, DEFAULT_MANIFEST, DEFAULT_REGISTRY, RunConfig
from core.crawl import ProjectCrawler, dump_graph, load_graph
from core.driver import GraphDriver, RunResult
from core.errors import DepScopeError
from core.log import LOG_LEVELS, Logger, null_progress, rich_progress_factory
from core.report import format_report, report_to_dict
from core.tags import RegistryTagSource, StaticTagSource

console = Console()

app = typer.Typer(
    name="depscope",
    help="DepScope - Find shared dependencies that no single version can satisfy across projects",
    add_completion=False,
)


def build_tag_source(config: RunConfig, tags_file: str | None = None):
    """Tag source from a JSON file of name -> tags, or the registry."""
    if tags_file:
        try:
            data = json.loads(Path(tags_file).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise DepScopeError(f"Could not read tags file {tags_file}: {e}")
        if not isinstance(data, dict):
            raise DepScopeError(f"Tags file {tags_file} must map dependency names to tag lists")
        return StaticTagSource(data)
    return RegistryTagSource(registry_url=config.registry_url, timeout=config.timeout)


async def analyze(config: RunConfig, graph_file: str | None, tags_file: str | None, logger: Logger, progress_factory) -> RunResult:
    """Crawl (or load) the project graph and run the driver over it."""
    if graph_file:
        projects = load_graph(graph_file)
    else:
        crawler = ProjectCrawler(
            config.projects_dir,
            whitelist=config.whitelist,
            manifest_name=config.manifest_name,
            logger=logger,
        )
        projects = await crawler.crawl(progress_factory)

    driver = GraphDriver(
        build_tag_source(config, tags_file),
        logger=logger,
        concurrency=config.concurrency,
    )
    return await driver.run(projects, config.allow_prerelease, progress_factory)


def _check_log_level(value: str) -> str:
    if value not in LOG_LEVELS:
        raise typer.BadParameter(f"Expected one of: {', '.join(LOG_LEVELS)}")
    return value


@app.command()
def crawl(
    projects_dir: str = typer.Argument(help="Directory holding one git checkout per project"),
    whitelist: list[str] | None = typer.Option(None, "--whitelist", "-w", help="Only crawl these projects"),
    manifest: str = typer.Option(DEFAULT_MANIFEST, "--manifest", help="Manifest file name inside each project"),
    output: str | None = typer.Option(None, "--out", "-o", help="Write the graph JSON here instead of stdout"),
    log_level: str = typer.Option("info", "--log-level", envvar="DEPSCOPE_LOG_LEVEL", callback=_check_log_level),
) -> None:
    """Crawl projects and save their tags and manifests as a JSON graph."""
    logger = Logger(log_level)
    crawler = ProjectCrawler(projects_dir, whitelist=whitelist or [], manifest_name=manifest, logger=logger)

    try:
        projects = asyncio.run(crawler.crawl())
    except DepScopeError as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)

    content = dump_graph(projects)
    if output:
        Path(output).write_text(content)
        logger.info(f"Wrote {len(projects)} projects to {output}")
    else:
        console.print_json(content)


@app.command()
def conflicts(
    projects_dir: str | None = typer.Argument(None, help="Directory holding one git checkout per project"),
    graph: str | None = typer.Option(None, "--graph", "-g", help="Use a graph saved by 'crawl' instead of crawling"),
    tags: str | None = typer.Option(None, "--tags", help="JSON file mapping dependency names to published tags"),
    whitelist: list[str] | None = typer.Option(None, "--whitelist", "-w", help="Only analyze these projects"),
    manifest: str = typer.Option(DEFAULT_MANIFEST, "--manifest", help="Manifest file name inside each project"),
    registry: str = typer.Option(DEFAULT_REGISTRY, "--registry", envvar="DEPSCOPE_REGISTRY", help="Package registry URL"),
    prerelease: bool = typer.Option(False, "--prerelease", help="Evaluate each project's latest pre-release instead"),
    concurrency: int = typer.Option(DEFAULT_CONCURRENCY, "--concurrency", min=1, help="Maximum concurrent tag lookups"),
    format_type: str = typer.Option("text", "--format", help="Output format: text or json"),
    log_level: str = typer.Option("info", "--log-level", envvar="DEPSCOPE_LOG_LEVEL", callback=_check_log_level),
) -> None:
    """Report shared dependencies whose requirements cannot all be satisfied."""
    if not projects_dir and not graph:
        console.print("Error: Pass a projects directory or --graph", style="red")
        raise typer.Exit(1)

    config = RunConfig(
        projects_dir=projects_dir,
        whitelist=whitelist or [],
        manifest_name=manifest,
        allow_prerelease=prerelease,
        log_level=log_level,
        concurrency=concurrency,
        registry_url=registry,
    )
    logger = Logger(log_level)

    try:
        if format_type == "text" and logger.enabled("info"):
            with Progress(console=logger.console, transient=True) as bar:
                result = asyncio.run(analyze(config, graph, tags, logger, rich_progress_factory(bar)))
        else:
            result = asyncio.run(analyze(config, graph, tags, logger, null_progress))
    except DepScopeError as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)

    if format_type == "json":
        console.print_json(json.dumps(report_to_dict(result)))
    else:
        console.print(format_report(result, markup=True))

    if result.unresolved:
        raise typer.Exit(2)


if __name__ == "__main__":
    app()

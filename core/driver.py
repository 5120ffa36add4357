"""Aggregate requirements across projects and resolve each shared dependency."""

import asyncio
from dataclasses import dataclass, field

from rich.markup import escape

from .config import DEFAULT_CONCURRENCY
from .dependency import DependencyNode
from .errors import EmptyGraphError, TagNotFoundError, TagSourceError
from .log import Logger, null_progress
from .models import InvalidRequirement, Manifest, Project, SkippedProject
from .normalize import ConstraintNormalizer
from .ranges import is_prerelease, parse_version
from .tags import TagSource

NO_TAGS = "no tags"
NO_APPLICABLE_VERSION = "no applicable version"


def select_version(project: Project, allow_prerelease: bool = False) -> str | None:
    """Pick the release of ``project`` whose manifest gets evaluated.

    Without ``allow_prerelease`` this is the highest tag without pre-release
    identifiers. With it, the highest tag overall, but only when that tag is a
    pre-release; otherwise there is nothing to evaluate.
    """
    tags = sorted(
        (tag for tag in project.available_tags if parse_version(tag) is not None),
        key=parse_version,
        reverse=True,
    )
    if not tags:
        return None
    if allow_prerelease:
        return tags[0] if is_prerelease(tags[0]) else None
    return next((tag for tag in tags if not is_prerelease(tag)), None)


@dataclass
class RunResult:
    """Everything a run learned about the shared dependencies."""

    dependencies: dict[str, DependencyNode] = field(default_factory=dict)
    unresolved: list[str] = field(default_factory=list)
    skipped_projects: list[SkippedProject] = field(default_factory=list)
    invalid_requirements: list[InvalidRequirement] = field(default_factory=list)
    backend_failures: dict[str, str] = field(default_factory=dict)

    @property
    def skipped_for_no_tags(self) -> int:
        return sum(1 for skipped in self.skipped_projects if skipped.reason == NO_TAGS)

    def unresolved_nodes(self) -> list[DependencyNode]:
        return [self.dependencies[name] for name in self.unresolved]


class GraphDriver:
    """Builds dependency nodes from a project graph and classifies them."""

    def __init__(
        self,
        tag_source: TagSource,
        normalizer: ConstraintNormalizer | None = None,
        logger: Logger | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        """Initialize the driver.

        Args:
            tag_source: Object with an async ``list_tags(name)`` method
            normalizer: Requirement normalizer, default matchers if omitted
            logger: Leveled logger, silent if omitted
            concurrency: Maximum tag lookups in flight
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.tag_source = tag_source
        self.normalizer = normalizer or ConstraintNormalizer()
        self.logger = logger or Logger.silent()
        self.concurrency = concurrency

    async def run(
        self,
        projects: list[Project],
        allow_prerelease: bool = False,
        progress_factory=null_progress,
    ) -> RunResult:
        """Aggregate, fetch tags and classify.

        Raises:
            EmptyGraphError: If ``projects`` is empty or not a list of projects
        """
        if not isinstance(projects, list) or not projects:
            raise EmptyGraphError("No projects to analyze")
        if not all(isinstance(project, Project) for project in projects):
            raise EmptyGraphError("Project graph contains entries that are not projects")

        result = self.aggregate(projects, allow_prerelease, progress_factory)
        result.backend_failures = await self.fetch_tags(result.dependencies, progress_factory)
        result.unresolved = [
            name for name, node in result.dependencies.items()
            if node.error is not None or not node.can_be_resolved()
        ]
        self.logger.info(
            f"{len(result.dependencies)} dependencies checked, "
            f"[bold]{len(result.unresolved)}[/bold] cannot be resolved"
        )
        return result

    def aggregate(
        self,
        projects: list[Project],
        allow_prerelease: bool = False,
        progress_factory=null_progress,
    ) -> RunResult:
        """Collect every valid requirement into dependency nodes."""
        result = RunResult()
        progress = progress_factory("Analyzing dependencies", len(projects))

        for project in projects:
            self._add_project(project, allow_prerelease, result)
            progress.increment()
        return result

    def _add_project(self, project: Project, allow_prerelease: bool, result: RunResult) -> None:
        if not project.available_tags:
            self.logger.silly(f"No available tags for [bold]{escape(project.name)}[/bold], skipping dependency check...")
            result.skipped_projects.append(SkippedProject(project.name, NO_TAGS))
            return

        version = select_version(project, allow_prerelease)
        if version is None:
            self.logger.silly(f"No applicable version of [bold]{escape(project.name)}[/bold], skipping dependency check...")
            result.skipped_projects.append(SkippedProject(project.name, NO_APPLICABLE_VERSION))
            return

        manifest = project.versions.get(version)
        if manifest is None:
            self.logger.warn(f"No manifest data for {escape(project.name)}@{version}")
            manifest = Manifest()
        elif manifest.invalid:
            self.logger.warn(f"Unparsable manifest for {escape(project.name)}@{version}, ignoring its requirements")

        for name, raw in manifest.requirements():
            normalized = self.normalizer.normalize(raw)
            if not normalized.valid:
                self.logger.silly(f"Invalid requirement {escape(name)}@{escape(repr(raw))} in {escape(project.name)}@{version}")
                result.invalid_requirements.append(
                    InvalidRequirement(project=project.name, version=version, dependency=name, raw=str(raw))
                )
                continue

            node = result.dependencies.get(name)
            if node is None:
                node = result.dependencies[name] = DependencyNode(name)
            node.add_constraint(normalized.range, project.name, version)

    async def fetch_tags(
        self,
        dependencies: dict[str, DependencyNode],
        progress_factory=null_progress,
    ) -> dict[str, str]:
        """Fetch published tags for every node, at most ``concurrency`` at a time.

        Returns:
            Backend error message per dependency whose lookup failed
        """
        progress = progress_factory("Resolving tags", len(dependencies))
        semaphore = asyncio.Semaphore(self.concurrency)
        failures: dict[str, str] = {}

        async def fetch(node: DependencyNode) -> None:
            async with semaphore:
                try:
                    await node.update_available_tags(self.tag_source)
                except TagNotFoundError as e:
                    self.logger.warn(escape(str(e)))
                    node.available_tags = []
                except TagSourceError as e:
                    self.logger.error(f"Tag lookup for {escape(node.name)} failed: {escape(str(e))}")
                    node.available_tags = []
                    node.error = str(e)
                    failures[node.name] = str(e)
                except Exception as e:
                    message = f"{type(e).__name__}: {e}"
                    self.logger.error(f"Tag lookup for {escape(node.name)} failed: {escape(message)}")
                    node.available_tags = []
                    node.error = message
                    failures[node.name] = message
                finally:
                    progress.increment()

        await asyncio.gather(*(fetch(node) for node in dependencies.values()))
        return failures

"""Collect projects, their release tags and the manifest at each tag."""

import asyncio
import json
from pathlib import Path

from rich.markup import escape

from .config import CRAWL_CONCURRENCY, DEFAULT_MANIFEST
from .errors import CrawlError, EmptyGraphError, NoProjectsError
from .log import Logger, null_progress
from .manifest import manifest_from_data, parse_manifest
from .models import Manifest, Project
from .ranges import clean_tags, parse_version


def list_projects(projects_dir: str | Path, whitelist: list[str] | None = None) -> list[str]:
    """Names of project directories inside ``projects_dir``.

    Args:
        projects_dir: Directory holding one folder per project
        whitelist: If given, only these project names are kept

    Returns:
        Sorted project names

    Raises:
        NoProjectsError: If the directory is missing or nothing matches
    """
    root = Path(projects_dir)
    if not root.is_dir():
        raise NoProjectsError(f"Projects directory {root} does not exist")

    names = sorted(entry.name for entry in root.iterdir() if entry.is_dir())
    if whitelist:
        names = [name for name in names if name in whitelist]
    if not names:
        raise NoProjectsError(
            f"No matching projects found in directory {root}. "
            "Please make sure you are running in the correct directory."
        )
    return names


async def run_git(args: list[str], cwd: str | Path) -> str:
    """Run a git command and return its stdout."""
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CrawlError(f"Could not run git in {cwd}: {e}")
    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        raise CrawlError(stderr.decode(errors="replace").strip() or f"git {' '.join(args)} failed")
    return stdout.decode(errors="replace")


class ProjectCrawler:
    """Reads tags and per-tag manifests from git checkouts of each project."""

    def __init__(
        self,
        projects_dir: str | Path,
        whitelist: list[str] | None = None,
        manifest_name: str = DEFAULT_MANIFEST,
        logger: Logger | None = None,
        max_concurrency: int = CRAWL_CONCURRENCY,
    ):
        self.projects_dir = Path(projects_dir)
        self.whitelist = list(whitelist or [])
        self.manifest_name = manifest_name
        self.logger = logger or Logger.silent()
        self.max_concurrency = max_concurrency
        self.failures: dict[str, str] = {}

    async def crawl(self, progress_factory=null_progress) -> list[Project]:
        """Crawl every project, one project at a time.

        A project whose tags cannot be read is kept with no tags and recorded
        in ``failures``; the remaining projects are still crawled.
        """
        names = list_projects(self.projects_dir, self.whitelist)
        self.logger.silly(f"Crawling [bold]{len(names)}[/bold] projects in {self.projects_dir}...")
        progress = progress_factory("Crawling projects", len(names))

        projects = []
        for name in names:
            try:
                projects.append(await self.extract_project(name))
            except CrawlError as e:
                self.failures[name] = str(e)
                self.logger.warn(f"Could not read tags for {escape(name)}: {escape(str(e))}")
                projects.append(Project(name=name))
            progress.increment()
        return projects

    async def extract_project(self, name: str) -> Project:
        """Tags of one project and its manifest at each tag."""
        path = self.projects_dir / name
        raw_tags = (await run_git(["tag"], path)).split()
        tags = clean_tags(raw_tags)
        project = Project(name=name, available_tags=tags, latest_tag=tags[0] if tags else "")

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def manifest_at(tag: str) -> tuple[str, Manifest]:
            async with semaphore:
                return tag, await self._manifest_at_tag(path, tag)

        results = await asyncio.gather(*(manifest_at(tag) for tag in raw_tags))
        for tag, manifest in results:
            version = parse_version(tag)
            if version is not None:
                project.versions.setdefault(str(version), manifest)
        return project

    async def _manifest_at_tag(self, path: Path, tag: str) -> Manifest:
        try:
            content = await run_git(["show", f"{tag}:{self.manifest_name}"], path)
        except CrawlError:
            self.logger.silly(f"No {self.manifest_name} at {path.name}@{tag}")
            return Manifest()
        manifest = parse_manifest(content)
        if manifest.invalid:
            self.logger.silly(f"Invalid {self.manifest_name} at {path.name}@{tag}")
        return manifest


def project_from_dict(data) -> Project:
    """Rebuild a Project from its JSON form.

    Raises:
        EmptyGraphError: If the entry is not a project object
    """
    if not isinstance(data, dict) or not isinstance(data.get("name"), str):
        raise EmptyGraphError(f"Malformed project entry: {data!r}")

    versions = data.get("versions") or {}
    if not isinstance(versions, dict):
        raise EmptyGraphError(f"Malformed versions for project {data['name']}")

    tags = data.get("available_tags") or []
    if not isinstance(tags, list):
        raise EmptyGraphError(f"Malformed available_tags for project {data['name']}")

    tags = clean_tags(tags)
    project = Project(name=data["name"], available_tags=tags, latest_tag=tags[0] if tags else "")
    for tag, content in versions.items():
        version = parse_version(tag)
        if version is not None:
            project.versions[str(version)] = manifest_from_data(content)
    return project


def load_graph(path: str | Path) -> list[Project]:
    """Load a crawled project graph written by ``dump_graph``.

    Raises:
        EmptyGraphError: If the file is unreadable, malformed or empty
    """
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise EmptyGraphError(f"Could not read project graph {path}: {e}")
    return graph_from_data(data)


def graph_from_data(data) -> list[Project]:
    if isinstance(data, dict):
        data = data.get("projects")
    if not isinstance(data, list) or not data:
        raise EmptyGraphError("Project graph is empty")
    return [project_from_dict(entry) for entry in data]


def dump_graph(projects: list[Project]) -> str:
    return json.dumps({"projects": [project.to_dict() for project in projects]}, indent=2)

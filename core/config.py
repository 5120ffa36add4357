"""Run configuration shared by the CLI and the web app."""

from dataclasses import dataclass, field

DEFAULT_REGISTRY = "https://registry.npmjs.org/"
DEFAULT_MANIFEST = "bower.json"
DEFAULT_CONCURRENCY = 8
# Concurrent `git show` calls per project.
CRAWL_CONCURRENCY = 5


@dataclass
class RunConfig:
    """Options for one conflict analysis run."""

    projects_dir: str | None = None
    whitelist: list[str] = field(default_factory=list)
    manifest_name: str = DEFAULT_MANIFEST
    allow_prerelease: bool = False
    log_level: str = "info"
    concurrency: int = DEFAULT_CONCURRENCY
    registry_url: str = DEFAULT_REGISTRY
    timeout: float = 30.0

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")

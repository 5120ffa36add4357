"""Core data models for DepScope."""

from dataclasses import dataclass, field


@dataclass
class Manifest:
    """Declared requirements of a project at one tag."""

    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    invalid: bool = False  # content could not be parsed

    def requirements(self) -> list[tuple[str, str]]:
        """Runtime requirements followed by development requirements."""
        return [*self.dependencies.items(), *self.dev_dependencies.items()]

    def to_data(self) -> dict:
        if self.invalid:
            return {"invalid": True}
        data = {}
        if self.dependencies:
            data["dependencies"] = dict(self.dependencies)
        if self.dev_dependencies:
            data["devDependencies"] = dict(self.dev_dependencies)
        return data


@dataclass
class Project:
    """A crawled project with its manifest at each released tag."""

    name: str
    available_tags: list[str] = field(default_factory=list)  # descending
    latest_tag: str = ""
    versions: dict[str, Manifest] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "available_tags": list(self.available_tags),
            "latest_tag": self.latest_tag,
            "versions": {tag: manifest.to_data() for tag, manifest in self.versions.items()},
        }


@dataclass(frozen=True)
class Constraint:
    """A version range requested by one project at one of its versions."""

    range: str
    from_project: str
    from_version: str


@dataclass
class RangeGroup:
    """All projects asking for the same range of a dependency."""

    range: str
    requested_by: list[tuple[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class SkippedProject:
    """A project that contributed no constraints."""

    name: str
    reason: str


@dataclass(frozen=True)
class InvalidRequirement:
    """A requirement string that could not be turned into a range."""

    project: str
    version: str
    dependency: str
    raw: str

"""Tests for the graph driver."""

import asyncio

import pytest

from core.crawl import graph_from_data
from core.driver import NO_APPLICABLE_VERSION, NO_TAGS, GraphDriver, select_version
from core.errors import EmptyGraphError, TagSourceError
from core.log import NullProgress
from core.models import Manifest, Project
from core.tags import StaticTagSource


class CountingTagSource:
    """Tag source that records how many lookups run at once."""

    def __init__(self, tags):
        self.tags = tags
        self.calls = []
        self.in_flight = 0
        self.peak = 0

    async def list_tags(self, name):
        self.calls.append(name)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return self.tags.get(name, [])


class FailingTagSource(StaticTagSource):
    """Static tag source whose backend is down for some names."""

    def __init__(self, tags, broken):
        super().__init__(tags)
        self.broken = broken

    async def list_tags(self, name):
        if name in self.broken:
            raise TagSourceError(name, f"registry unavailable for {name}")
        return await super().list_tags(name)


class CrashingTagSource(StaticTagSource):
    """Static tag source that raises an unexpected error for some names."""

    def __init__(self, tags, broken):
        super().__init__(tags)
        self.broken = broken

    async def list_tags(self, name):
        if name in self.broken:
            raise RuntimeError("connection reset")
        return await super().list_tags(name)


class TestSelectVersion:
    """Test the choice of which release of a project to evaluate."""

    def test_latest_release(self, make_project):
        project = make_project("app", ["2.0.0-rc.1", "1.5.0", "1.4.0"])
        assert select_version(project) == "1.5.0"

    def test_prerelease_mode_takes_latest_prerelease(self, make_project):
        project = make_project("app", ["2.0.0-rc.1", "1.5.0"])
        assert select_version(project, allow_prerelease=True) == "2.0.0-rc.1"

    def test_prerelease_mode_skips_when_latest_is_release(self, make_project):
        project = make_project("app", ["2.0.0", "2.0.0-rc.1"])
        assert select_version(project, allow_prerelease=True) is None

    def test_only_prereleases(self, make_project):
        project = make_project("app", ["1.0.0-beta.1"])
        assert select_version(project) is None

    def test_no_tags(self, make_project):
        assert select_version(make_project("app", [])) is None


class TestGraphDriver:
    """Test aggregation, tag fetching and classification."""

    @pytest.mark.asyncio
    async def test_overlapping_requirements_resolve(self, make_project):
        """Should resolve ^1.0.0 and ^1.5.0 to 1.6.0."""
        projects = [
            make_project("p1", ["1.0.0"], {"dep": "^1.0.0"}),
            make_project("p2", ["3.2.0"], {"dep": "^1.5.0"}),
        ]
        driver = GraphDriver(StaticTagSource({"dep": ["2.0.0", "1.6.0", "1.4.0"]}))

        result = await driver.run(projects)

        node = result.dependencies["dep"]
        assert result.unresolved == []
        assert node.get_best_match() == "1.6.0"
        assert [(c.range, c.from_project, c.from_version) for c in node.constraints] == [
            ("^1.0.0", "p1", "1.0.0"),
            ("^1.5.0", "p2", "3.2.0"),
        ]

    @pytest.mark.asyncio
    async def test_disjoint_requirements_unresolved(self, make_project):
        """Should list a dependency whose ranges do not overlap as unresolved."""
        projects = [
            make_project("p1", ["1.0.0"], {"dep": "^1.0.0"}),
            make_project("p2", ["1.0.0"], {"dep": "^2.0.0"}),
        ]
        driver = GraphDriver(StaticTagSource({"dep": ["2.0.0", "1.0.0"]}))

        result = await driver.run(projects)

        assert result.unresolved == ["dep"]
        assert result.backend_failures == {}

    @pytest.mark.asyncio
    async def test_dev_dependencies_are_included(self, make_project):
        """Should aggregate development requirements after runtime ones."""
        projects = [make_project("p1", ["1.0.0"], {"dep": "^1.0.0"}, {"dep": "~1.2.0", "tool": "^3.0.0"})]
        driver = GraphDriver(StaticTagSource({"dep": ["1.2.5"], "tool": ["3.1.0"]}))

        result = await driver.run(projects)

        assert result.dependencies["dep"].ranges == ["^1.0.0", "~1.2.0"]
        assert list(result.dependencies) == ["dep", "tool"]
        assert result.unresolved == []

    @pytest.mark.asyncio
    async def test_invalid_requirement_excluded(self, make_project):
        """Should record unrecognized requirements without adding constraints."""
        projects = [make_project("p1", ["1.0.0"], {"dep": "not-a-range", "other": "^1.0.0"})]
        driver = GraphDriver(StaticTagSource({"other": ["1.0.0"]}))

        result = await driver.run(projects)

        assert "dep" not in result.dependencies
        assert len(result.invalid_requirements) == 1
        invalid = result.invalid_requirements[0]
        assert (invalid.project, invalid.version, invalid.dependency, invalid.raw) == ("p1", "1.0.0", "dep", "not-a-range")

    @pytest.mark.asyncio
    async def test_hosted_pins_are_normalized(self, make_project):
        """Should treat repository pins as the ranges in their refs."""
        projects = [
            make_project("p1", ["1.0.0"], {"dep": "owner/dep#^1.2.0"}),
            make_project("p2", ["1.0.0"], {"dep": "https://github.com/owner/dep#~1.3.0"}),
        ]
        driver = GraphDriver(StaticTagSource({"dep": ["1.4.0", "1.3.2", "1.2.0"]}))

        result = await driver.run(projects)

        assert result.dependencies["dep"].ranges == ["^1.2.0", "~1.3.0"]
        assert result.dependencies["dep"].get_best_match() == "1.3.2"

    @pytest.mark.asyncio
    async def test_project_without_tags_skipped(self, make_project):
        """Should skip projects with no tags and keep going."""
        projects = [
            make_project("untagged", [], versions={}),
            make_project("p1", ["1.0.0"], {"dep": "^1.0.0"}),
        ]
        driver = GraphDriver(StaticTagSource({"dep": ["1.0.0"]}))

        result = await driver.run(projects)

        assert [(s.name, s.reason) for s in result.skipped_projects] == [("untagged", NO_TAGS)]
        assert result.skipped_for_no_tags == 1
        assert [c.from_project for c in result.dependencies["dep"].constraints] == ["p1"]

    @pytest.mark.asyncio
    async def test_prerelease_mode(self, make_project):
        """Should evaluate pre-release manifests and skip projects whose latest tag is a release."""
        projects = [
            make_project("beta", ["2.0.0-beta.1", "1.0.0"], versions={
                "2.0.0-beta.1": Manifest(dependencies={"dep": "^2.0.0"}),
                "1.0.0": Manifest(dependencies={"dep": "^1.0.0"}),
            }),
            make_project("stable", ["1.0.0"], {"dep": "^1.0.0"}),
        ]
        driver = GraphDriver(StaticTagSource({"dep": ["2.1.0", "1.0.0"]}))

        result = await driver.run(projects, allow_prerelease=True)

        node = result.dependencies["dep"]
        assert [(c.range, c.from_version) for c in node.constraints] == [("^2.0.0", "2.0.0-beta.1")]
        assert [(s.name, s.reason) for s in result.skipped_projects] == [("stable", NO_APPLICABLE_VERSION)]

    @pytest.mark.asyncio
    async def test_missing_or_invalid_manifest(self, make_project):
        """Should treat missing and unparsable manifests as having no requirements."""
        projects = [
            make_project("missing", ["1.0.0"], versions={}),
            make_project("broken", ["1.0.0"], versions={"1.0.0": Manifest(invalid=True)}),
            make_project("p1", ["1.0.0"], {"dep": "^1.0.0"}),
        ]
        driver = GraphDriver(StaticTagSource({"dep": ["1.0.0"]}))

        result = await driver.run(projects)

        assert list(result.dependencies) == ["dep"]
        assert result.skipped_projects == []

    @pytest.mark.asyncio
    async def test_unknown_dependency_unresolved(self, make_project):
        """Should leave a dependency unknown to the tag source unresolved."""
        projects = [make_project("p1", ["1.0.0"], {"ghost": "^1.0.0", "dep": "^1.0.0"})]
        driver = GraphDriver(StaticTagSource({"dep": ["1.0.0"]}))

        result = await driver.run(projects)

        assert result.unresolved == ["ghost"]
        assert result.backend_failures == {}
        assert result.dependencies["ghost"].error is None

    @pytest.mark.asyncio
    async def test_backend_failure_isolated(self, make_project):
        """Should mark only the affected dependency as failed."""
        projects = [make_project("p1", ["1.0.0"], {"flaky": "^1.0.0", "dep": "^1.0.0"})]
        source = FailingTagSource({"dep": ["1.0.0"], "flaky": ["1.0.0"]}, broken={"flaky"})

        result = await GraphDriver(source).run(projects)

        assert result.unresolved == ["flaky"]
        assert "registry unavailable" in result.backend_failures["flaky"]
        assert "registry unavailable" in result.dependencies["flaky"].error
        assert result.dependencies["dep"].can_be_resolved()

    @pytest.mark.asyncio
    async def test_unexpected_source_error_isolated(self, make_project):
        """Should record any tag source exception against its own dependency only."""
        projects = [make_project("p1", ["1.0.0"], {"bad": "^1.0.0", "good": "^1.0.0"})]
        source = CrashingTagSource({"good": ["1.0.0"]}, broken={"bad"})

        result = await GraphDriver(source).run(projects)

        assert result.unresolved == ["bad"]
        assert result.backend_failures["bad"] == "RuntimeError: connection reset"
        assert result.dependencies["bad"].error == "RuntimeError: connection reset"
        assert result.dependencies["good"].get_best_match() == "1.0.0"

    @pytest.mark.asyncio
    async def test_one_lookup_per_dependency(self, make_project):
        """Should fetch tags once per dependency name, not per constraint."""
        projects = [make_project(f"p{i}", ["1.0.0"], {"dep": "^1.0.0"}) for i in range(4)]
        source = CountingTagSource({"dep": ["1.0.0"]})

        await GraphDriver(source).run(projects)

        assert source.calls == ["dep"]

    @pytest.mark.asyncio
    async def test_tag_fetching_is_bounded(self, make_project):
        """Should never run more lookups at once than the concurrency limit."""
        requirements = {f"dep{i}": "^1.0.0" for i in range(6)}
        projects = [make_project("p1", ["1.0.0"], requirements)]
        source = CountingTagSource({name: ["1.0.0"] for name in requirements})

        result = await GraphDriver(source, concurrency=2).run(projects)

        assert source.peak == 2
        assert len(source.calls) == 6
        assert result.unresolved == []

    @pytest.mark.asyncio
    async def test_progress_handles(self, make_project):
        """Should advance a progress handle per project and per dependency."""
        handles = {}

        def factory(label, total):
            handles[label] = NullProgress(label, total)
            return handles[label]

        projects = [
            make_project("p1", ["1.0.0"], {"a": "^1.0.0", "b": "^1.0.0"}),
            make_project("p2", [], versions={}),
        ]
        await GraphDriver(StaticTagSource({"a": ["1.0.0"], "b": ["1.0.0"]})).run(projects, progress_factory=factory)

        assert handles["Analyzing dependencies"].completed == 2
        assert handles["Resolving tags"].completed == 2

    @pytest.mark.asyncio
    async def test_graph_loaded_from_data(self, conflicting_graph, sample_tags):
        """Should analyze a graph in its JSON form."""
        projects = graph_from_data(conflicting_graph)

        result = await GraphDriver(StaticTagSource(sample_tags)).run(projects)

        assert result.unresolved == ["dep"]
        assert result.dependencies["tool"].get_best_match() == "0.3.4"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("projects", [[], None, ["not a project"]])
    async def test_empty_graph_is_fatal(self, projects):
        """Should abort before resolution when there is nothing valid to analyze."""
        with pytest.raises(EmptyGraphError):
            await GraphDriver(StaticTagSource({})).run(projects)

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValueError):
            GraphDriver(StaticTagSource({}), concurrency=0)


def test_hand_built_project_selects_release():
    """Should accept plain Project instances built by hand."""
    project = Project(name="app", available_tags=["1.0.0"], latest_tag="1.0.0",
                      versions={"1.0.0": Manifest(dependencies={"dep": "1.0.0"})})

    assert select_version(project) == "1.0.0"

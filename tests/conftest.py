"""Pytest configuration and fixtures."""

import pytest

from core.models import Manifest, Project
from core.ranges import clean_tags


@pytest.fixture
def make_project():
    """Factory for projects whose manifests are the same at every tag."""

    def _make(name, tags, dependencies=None, dev_dependencies=None, versions=None):
        tags = clean_tags(tags)
        if versions is None:
            manifest = Manifest(
                dependencies=dict(dependencies or {}),
                dev_dependencies=dict(dev_dependencies or {}),
            )
            versions = {tag: manifest for tag in tags}
        return Project(
            name=name,
            available_tags=tags,
            latest_tag=tags[0] if tags else "",
            versions=versions,
        )

    return _make


@pytest.fixture
def conflicting_graph():
    """Two projects that disagree on the major version of `dep`."""
    return {
        "projects": [
            {
                "name": "p1",
                "available_tags": ["1.0.0"],
                "versions": {"1.0.0": {"dependencies": {"dep": "^1.0.0"}}},
            },
            {
                "name": "p2",
                "available_tags": ["v2.1.0", "2.0.0"],
                "versions": {
                    "2.1.0": {"dependencies": {"dep": "^2.0.0"}, "devDependencies": {"tool": "~0.3.0"}},
                    "2.0.0": {"dependencies": {"dep": "^1.0.0"}},
                },
            },
        ]
    }


@pytest.fixture
def sample_tags():
    return {
        "dep": ["2.0.0", "1.6.0", "1.4.0"],
        "tool": ["0.3.4", "0.3.0"],
    }


@pytest.fixture
def sample_package_json():
    """Sample manifest content for testing."""
    return """
{
  "name": "test-project",
  "dependencies": {
    "express": "^4.18.0",
    "lodash": "~4.17.21"
  },
  "devDependencies": {
    "mocha": "^10.0.0"
  }
}
"""

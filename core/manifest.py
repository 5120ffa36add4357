"""Manifest (bower.json / package.json) parsing."""

import json

from .models import Manifest


def manifest_from_data(data) -> Manifest:
    """Build a Manifest from decoded JSON.

    Anything that is not an object, or whose dependency sections are not
    objects, yields an empty manifest flagged as invalid, as does the
    ``{"invalid": true}`` marker written by ``Manifest.to_data``.
    """
    if not isinstance(data, dict) or data.get("invalid") is True:
        return Manifest(invalid=True)

    dependencies = data.get("dependencies") or {}
    dev_dependencies = data.get("devDependencies") or {}
    if not isinstance(dependencies, dict) or not isinstance(dev_dependencies, dict):
        return Manifest(invalid=True)
    return Manifest(dependencies=dict(dependencies), dev_dependencies=dict(dev_dependencies))


def parse_manifest(content: str) -> Manifest:
    """Parse manifest file content.

    Args:
        content: Raw JSON text

    Returns:
        Parsed Manifest; invalid JSON gives an empty manifest marked invalid
    """
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return Manifest(invalid=True)
    return manifest_from_data(data)

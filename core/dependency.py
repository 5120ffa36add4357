"""Aggregated constraints for a single dependency."""

from .errors import EmptyConstraintSetError
from .models import Constraint
from .ranges import VersionRange, intersect_all, parse_range


class DependencyNode:
    """Every range requested for one dependency name, plus its published tags."""

    def __init__(self, name: str):
        self.name = name
        self.constraints: list[Constraint] = []
        self.available_tags: list[str] = []
        self.error: str | None = None  # set when the tag source failed

    def add_constraint(self, range: str, from_project: str, from_version: str) -> Constraint:
        """Record a requested range; identical ranges are kept for attribution."""
        constraint = Constraint(range=range, from_project=from_project, from_version=from_version)
        self.constraints.append(constraint)
        return constraint

    @property
    def ranges(self) -> list[str]:
        return [constraint.range for constraint in self.constraints]

    def intersection(self) -> VersionRange:
        """Versions that satisfy every constraint.

        Raises:
            EmptyConstraintSetError: If no constraints have been added
        """
        if not self.constraints:
            raise EmptyConstraintSetError(self.name)
        return intersect_all([parse_range(range) for range in self.ranges])

    def ranges_can_resolve(self) -> bool:
        """Check whether the constraint ranges overlap at all."""
        return not self.intersection().is_empty()

    def get_best_match(self) -> str | None:
        """Highest available tag inside the intersection, or None."""
        return self.intersection().max_satisfying(self.available_tags)

    def can_be_resolved(self) -> bool:
        if not self.ranges_can_resolve():
            return False
        return self.get_best_match() is not None

    async def update_available_tags(self, tag_source) -> list[str]:
        """Fetch published tags from ``tag_source`` and store them."""
        self.available_tags = await tag_source.list_tags(self.name)
        return self.available_tags

    def __repr__(self) -> str:
        return f"DependencyNode({self.name!r}, constraints={len(self.constraints)})"

"""Reports on dependencies that cannot be resolved."""

from rich.markup import escape

from .dependency import DependencyNode
from .driver import RunResult
from .models import RangeGroup


def group_constraints(node: DependencyNode) -> list[RangeGroup]:
    """Group a node's constraints by range, in the order ranges were first seen."""
    groups: dict[str, RangeGroup] = {}
    for constraint in node.constraints:
        group = groups.get(constraint.range)
        if group is None:
            group = groups[constraint.range] = RangeGroup(range=constraint.range)
        group.requested_by.append((constraint.from_project, constraint.from_version))
    return list(groups.values())


def format_report(result: RunResult, markup: bool = False) -> str:
    """Human readable report of the unresolved dependencies.

    Args:
        result: Output of a driver run
        markup: Wrap names in rich markup for console output

    Returns:
        Report text
    """

    def style(text: str, tag: str) -> str:
        return f"[{tag}]{escape(text)}[/{tag}]" if markup else text

    def plain(text: str) -> str:
        return escape(text) if markup else text

    nodes = result.unresolved_nodes()
    lines = [
        f"There are {style(str(len(nodes)), 'bold')} libraries that are impossible "
        "to resolve in the dependency graph:"
    ]
    for node in nodes:
        reason = f" (backend error: {plain(node.error)})" if node.error else ""
        lines.append(f"{style(node.name, 'green')} can't be resolved{reason}")
        for group in group_constraints(node):
            lines.append(f"-- {style(group.range, 'bold')} ({len(group.requested_by)} want)")
            wanted = ", ".join(f"{project} ({version})" for project, version in group.requested_by)
            lines.append(f"---- {plain(wanted)}")

    other_skips = len(result.skipped_projects) - result.skipped_for_no_tags
    lines.append("")
    lines.append(
        f"Skipped for no tags: {result.skipped_for_no_tags}; "
        f"skipped with no applicable version: {other_skips}; "
        f"invalid requirements excluded: {len(result.invalid_requirements)}; "
        f"tag source failures: {len(result.backend_failures)}"
    )
    return "\n".join(lines)


def report_to_dict(result: RunResult) -> dict:
    """JSON-friendly form of a run."""
    unresolved = []
    for node in result.unresolved_nodes():
        unresolved.append({
            "name": node.name,
            "error": node.error,
            "ranges": [
                {
                    "range": group.range,
                    "requested_by": [
                        {"project": project, "version": version}
                        for project, version in group.requested_by
                    ],
                }
                for group in group_constraints(node)
            ],
        })

    resolved = {}
    for name, node in result.dependencies.items():
        if name not in result.unresolved:
            resolved[name] = node.get_best_match()

    return {
        "unresolved": unresolved,
        "resolved": resolved,
        "summary": {
            "dependencies": len(result.dependencies),
            "unresolved": len(result.unresolved),
            "skipped_for_no_tags": result.skipped_for_no_tags,
            "skipped_projects": [
                {"name": skipped.name, "reason": skipped.reason}
                for skipped in result.skipped_projects
            ],
            "invalid_requirements": [
                {
                    "project": invalid.project,
                    "version": invalid.version,
                    "dependency": invalid.dependency,
                    "requirement": invalid.raw,
                }
                for invalid in result.invalid_requirements
            ],
            "backend_failures": dict(result.backend_failures),
        },
    }

"""Publish ordering for workspace projects."""

from __future__ import annotations

from collections.abc import Mapping

from .errors import ReleaseConfigError
from .models import ProjectDescriptor


def topo_sort(projects: Mapping[str, ProjectDescriptor]) -> list[str]:
    """Order project names so every project follows its internal dependencies.

    Ties are broken alphabetically. Dependencies outside ``projects`` are
    treated as already published.

    Raises:
        ReleaseConfigError: If the dependencies form a cycle.
    """
    pending = {
        name: {dep for dep in info.dependencies if dep in projects}
        for name, info in projects.items()
    }
    order: list[str] = []
    ready = sorted(name for name, deps in pending.items() if not deps)

    while ready:
        name = ready.pop(0)
        order.append(name)
        del pending[name]
        for dependent in [n for n, deps in pending.items() if name in deps]:
            pending[dependent].discard(name)
            if not pending[dependent]:
                ready.append(dependent)
        ready.sort()

    if pending:
        raise ReleaseConfigError(
            f"Dependency cycle detected involving: {sorted(pending)}"
        )
    return order

"""
Engine — resource dependency graph (pure).

Edge collection, validation and topological ordering for a catalog.
No I/O, no subprocess.
"""

from __future__ import annotations

from provisioner.core.models.resource import Resource


class CatalogError(Exception):
    """Raised when a catalog cannot be converged as declared."""


def dependencies(resources: list[Resource]) -> dict[str, list[str]]:
    """Map each resource id to the ids that must converge before it.

    ``requires`` edges point backwards; ``notify`` edges point forwards
    (the notifier runs first), so both are folded into one mapping.
    Unknown ids are kept so that ``validate`` can report them.
    """
    deps: dict[str, list[str]] = {r.id: [] for r in resources}
    for r in resources:
        for dep in r.requires:
            if dep not in deps[r.id]:
                deps[r.id].append(dep)
    for r in resources:
        for target in r.notify:
            if target in deps and r.id not in deps[target]:
                deps[target].append(r.id)
    return deps


def validate(resources: list[Resource]) -> list[str]:
    """Validate the resource graph.

    Checks for:
    - Duplicate resource IDs
    - ``requires``/``notify`` references to unknown IDs
    - Cycles (Kahn's algorithm)

    Returns:
        List of error strings (empty = valid).
    """
    errors: list[str] = []
    ids = {r.id for r in resources}

    # Duplicate IDs
    seen: set[str] = set()
    for r in resources:
        if r.id in seen:
            errors.append(f"Duplicate resource ID: {r.id}")
        seen.add(r.id)

    # Missing refs
    for r in resources:
        for dep in r.requires:
            if dep not in ids:
                errors.append(f"Resource '{r.id}' requires unknown resource '{dep}'")
        for target in r.notify:
            if target not in ids:
                errors.append(f"Resource '{r.id}' notifies unknown resource '{target}'")

    if errors:
        return errors

    if len(order(resources)) < len(resources):
        errors.append("Dependency cycle detected in catalog")

    return errors


def order(resources: list[Resource]) -> list[Resource]:
    """Topological order, stable with respect to declaration order.

    Resources caught in a cycle are left out; ``validate`` turns that
    into an error before anything is converged.
    """
    deps = dependencies(resources)
    position = {r.id: i for i, r in enumerate(resources)}
    by_id = {r.id: r for r in resources}

    in_degree: dict[str, int] = {r.id: 0 for r in resources}
    # Build adjacency: dep → list of resources that depend on it
    adj: dict[str, list[str]] = {r.id: [] for r in resources}
    for rid, rdeps in deps.items():
        for dep in rdeps:
            if dep in adj:
                in_degree[rid] += 1
                adj[dep].append(rid)

    ready = sorted((rid for rid, deg in in_degree.items() if deg == 0), key=position.__getitem__)
    ordered: list[Resource] = []

    while ready:
        node = ready.pop(0)
        ordered.append(by_id[node])
        for successor in adj[node]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                ready.append(successor)
        ready.sort(key=position.__getitem__)

    return ordered

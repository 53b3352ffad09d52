"""Manifest validation: shape checks followed by dependency-cycle detection.

Every issue found is collected and raised together as one
ManifestValidationError; nothing short-circuits on the first problem.
"""

import logging
from typing import Optional

from .errors import ManifestValidationError
from .manifest import SUPPORTED_MANIFEST_VERSION, Manifest, Module

log = logging.getLogger(__name__)

_UNVISITED, _VISITING, _DONE = 0, 1, 2


def validate(manifest: Optional[Manifest]) -> None:
    """Raise ManifestValidationError listing every issue, or return None."""
    if manifest is None:
        raise ManifestValidationError(["manifest cannot be nil"])

    issues: list[str] = []
    if manifest.manifest_version != SUPPORTED_MANIFEST_VERSION:
        issues.append(
            f"unsupported manifest version: {manifest.manifest_version} "
            f"(expected {SUPPORTED_MANIFEST_VERSION})"
        )

    if manifest.modules is None:
        issues.append("modules cannot be nil")
    else:
        issues.extend(_module_issues(manifest.modules))
        issues.extend(detect_cycles(manifest.modules))

    if issues:
        log.debug("Manifest has %d validation issues", len(issues))
        raise ManifestValidationError(issues)


def _module_issues(modules: list[Module]) -> list[str]:
    issues = []
    names: set[str] = set()
    paths: set[str] = set()

    for i, module in enumerate(modules):
        label = f"module[{i}] ({module.name})"
        if not module.name:
            issues.append(f"module[{i}] name cannot be empty")
        elif module.name in names:
            issues.append(f"duplicate module name: {module.name}")
        names.add(module.name)

        if not module.module:
            issues.append(f"{label} module path cannot be empty")
        elif module.module in paths:
            issues.append(f"duplicate module path: {module.module}")
        paths.add(module.module)

        if not module.repo:
            issues.append(f"{label} repo cannot be empty")

        if module.dependents is None:
            issues.append(f"{label} dependents cannot be nil")
            continue

        repos: set[str] = set()
        for j, dep in enumerate(module.dependents):
            if not dep.repo:
                issues.append(f"{label} dependent[{j}] repo cannot be empty")
            elif dep.repo in repos:
                issues.append(f"{label} has duplicate dependent repo: {dep.repo}")
            repos.add(dep.repo)

            if not dep.module:
                issues.append(f"{label} dependent[{j}] ({dep.repo}) module cannot be empty")
            if not dep.module_path:
                issues.append(f"{label} dependent[{j}] ({dep.repo}) module_path cannot be empty")

    return issues


def _edges(modules: list[Module]) -> dict[str, list[str]]:
    """Module name → names of manifest modules its dependents reference, in manifest order.

    References to modules outside the manifest and to the module itself are not edges.
    """
    owner = {}
    for module in modules:
        owner.setdefault(module.module, module.name)

    edges: dict[str, list[str]] = {}
    for module in modules:
        targets = edges.setdefault(module.name, [])
        for dep in module.dependents or []:
            target = owner.get(dep.module)
            if target is not None and target != module.name and target not in targets:
                targets.append(target)
    return edges


def detect_cycles(modules: list[Module]) -> list[str]:
    """One ``dependency cycle detected: A -> B -> A`` issue per DFS root that reaches a cycle."""
    edges = _edges(modules)
    state = {name: _UNVISITED for name in edges}
    issues = []

    for root in edges:
        if state[root] != _UNVISITED:
            continue

        path = [root]
        stack = [iter(edges[root])]
        state[root] = _VISITING

        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                state[path.pop()] = _DONE
                stack.pop()
                continue
            if state[nxt] == _VISITING:
                cycle = path[path.index(nxt):] + [nxt]
                issues.append(f"dependency cycle detected: {' -> '.join(cycle)}")
                for name in path:
                    state[name] = _DONE
                break
            if state[nxt] == _UNVISITED:
                state[nxt] = _VISITING
                path.append(nxt)
                stack.append(iter(edges[nxt]))

    return issues

"""Answer "does this module depend on the target, and at what version?" for a local module.

The Go toolchain is asked first. When it fails (offline, broken workspace,
missing binary) the declaration file is parsed directly.
"""

import logging

from . import toolchain
from .declarations import read_declaration
from .errors import ToolchainError

log = logging.getLogger(__name__)


async def has_dependency(module_dir: str, target: str) -> bool:
    """True when *target* is in the module's build graph (or its go.mod, as a fallback).

    Raises OSError when the toolchain failed and go.mod cannot be read either.
    """
    try:
        lines = await toolchain.go_list_modules(module_dir)
    except ToolchainError as e:
        log.debug("go list failed in %s, parsing go.mod instead: %s", module_dir, e)
        return read_declaration(module_dir).depends_on(target)

    prefix = target + " "
    return any(line == target or line.startswith(prefix) for line in lines)


def _version_from_graph(graph: list[dict], target: str) -> str:
    for info in graph:
        if info.get("Path") != target:
            continue
        replace = info.get("Replace") or {}
        if replace.get("Version"):
            return replace["Version"]
        return info.get("Version") or ""
    return ""


async def dependency_version(module_dir: str, target: str) -> str:
    """Version of *target* the module resolves to, "" when it does not depend on it.

    A replacement carrying its own version is authoritative over the nominal one.
    Raises OSError when the toolchain failed and go.mod cannot be read either.
    """
    try:
        graph = await toolchain.go_list_module_graph(module_dir)
    except ToolchainError as e:
        log.debug("go list -json failed in %s, parsing go.mod instead: %s", module_dir, e)
        return read_declaration(module_dir).dependency_version(target)
    return _version_from_graph(graph, target)

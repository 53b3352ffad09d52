import logging
import os
from pathlib import Path
from typing import Sequence

from .declarations import DECLARATION_FILE, module_path_from_file
from .models import DiscoveredModule
from .patterns import path_included
from .repository import infer_repository

log = logging.getLogger(__name__)

SKIP_DIRS = {".git", ".hg", ".svn", "node_modules"}


def _depth(rel_path: str) -> int:
    return 0 if rel_path == "." else rel_path.count("/")


def find_modules(
    root: str | Path,
    max_depth: int = 0,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
) -> list[DiscoveredModule]:
    """
    Walk *root* and return every module root under it.

    A module root is a directory holding a declaration file. Roots nested
    inside another discovered root are dropped, so vendored or sub-modules are
    not counted twice.

    Args:
        root: Directory to walk.
        max_depth: Maximum number of path separators in an entry's path
            relative to *root*; deeper directories are pruned whole. 0 = no limit.
        include: Glob patterns a module directory (or one of its ancestors)
            must match. Empty means everything.
        exclude: Glob patterns that drop a module directory when it or any
            ancestor matches. Exclusion wins over inclusion.

    Returns:
        Discovered modules, in no guaranteed order.
    """
    root = Path(root)
    found: list[DiscoveredModule] = []

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        rel_dir = current.relative_to(root).as_posix()

        # Prune in place so os.walk never descends into skipped subtrees.
        kept = []
        for name in sorted(dirnames):
            if name in SKIP_DIRS:
                continue
            child_rel = name if rel_dir == "." else f"{rel_dir}/{name}"
            if max_depth > 0 and _depth(child_rel) > max_depth:
                continue
            kept.append(name)
        dirnames[:] = kept

        if DECLARATION_FILE not in filenames:
            continue
        file_rel = DECLARATION_FILE if rel_dir == "." else f"{rel_dir}/{DECLARATION_FILE}"
        if max_depth > 0 and _depth(file_rel) > max_depth:
            continue
        if not path_included(rel_dir, include, exclude):
            continue

        try:
            module_path = module_path_from_file(current / DECLARATION_FILE)
        except (OSError, UnicodeDecodeError, ValueError) as e:
            log.debug("Skipping %s: %s", current, e)
            continue

        found.append(DiscoveredModule(
            path=str(current),
            module_path=module_path,
            repository=infer_repository(module_path),
        ))

    return drop_nested(found)


def drop_nested(modules: list[DiscoveredModule]) -> list[DiscoveredModule]:
    """Remove every module whose path lies strictly inside another module's path."""
    paths = [Path(m.path) for m in modules]
    result = []
    for module, path in zip(modules, paths):
        nested = any(
            other != path and path.is_relative_to(other)
            for other in paths
        )
        if not nested:
            result.append(module)
    return result

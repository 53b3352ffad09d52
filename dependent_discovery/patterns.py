"""Include/exclude filtering shared by the workspace and GitHub discovery engines."""

from fnmatch import fnmatchcase
from pathlib import PurePosixPath
from typing import Sequence


def glob_match(pattern: str, path: str) -> bool:
    """Shell-glob match where wildcards never cross a ``/``.

    ``*``, ``?`` and ``[...]`` apply within a single path segment, so the
    pattern and the path must have the same number of segments.
    """
    pattern_parts = pattern.split("/")
    path_parts = path.split("/")
    if len(pattern_parts) != len(path_parts):
        return False
    return all(fnmatchcase(seg, pat) for pat, seg in zip(pattern_parts, path_parts))


def _ancestors(rel_path: str) -> list[str]:
    """``a/b/c`` -> ``["a", "a/b", "a/b/c"]``."""
    parts = PurePosixPath(rel_path).parts
    return ["/".join(parts[:i]) for i in range(1, len(parts) + 1)]


def _any_match(patterns: Sequence[str], rel_path: str) -> bool:
    candidates = [rel_path, *_ancestors(rel_path)]
    return any(glob_match(p, c) for p in patterns for c in candidates)


def path_included(
    rel_path: str,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
) -> bool:
    """Decide whether a directory (relative to the scan root) passes the filters.

    Both pattern sets are tried against the path itself and every ancestor
    prefix, so excluding ``vendor`` also drops ``vendor/x/y``. Exclusion wins
    when both sides match; an empty include set means "everything".
    """
    if exclude and _any_match(exclude, rel_path):
        return False
    if not include:
        return True
    return _any_match(include, rel_path)


def name_matches(pattern: str, name: str) -> bool:
    """Repository-name match with a single ``*`` split point.

    ``*`` alone matches everything, ``pre*suf`` matches by prefix and suffix,
    anything else (including patterns with more than one ``*``) must be equal.
    """
    if pattern == "*":
        return True
    if "*" in pattern:
        parts = pattern.split("*")
        if len(parts) == 2:
            prefix, suffix = parts
            return (
                len(name) >= len(prefix) + len(suffix)
                and name.startswith(prefix)
                and name.endswith(suffix)
            )
    return pattern == name


def name_included(
    name: str,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
) -> bool:
    if any(name_matches(p, name) for p in exclude):
        return False
    if not include:
        return True
    return any(name_matches(p, name) for p in include)

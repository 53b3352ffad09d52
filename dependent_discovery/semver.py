"""Semantic version parsing and ordering, Go module flavour.

Accepted forms: ``vMAJOR[.MINOR[.PATCH[-PRERELEASE][+BUILD]]]``. The shorthand
``v1`` and ``v1.2`` forms are valid (and mean ``v1.0.0`` / ``v1.2.0``) only when
no prerelease or build suffix is attached. A missing ``v`` is tolerated by
``normalize``; anything else that does not parse is "not a version" and is
ignored by ``latest`` rather than compared lexically.
"""

import re
from functools import cmp_to_key
from typing import Iterable, Optional

_NUM = r"0|[1-9][0-9]*"
_IDENT = r"[0-9A-Za-z-]+"

_SEMVER_RE = re.compile(
    rf"^v(?P<major>{_NUM})"
    rf"(?:\.(?P<minor>{_NUM})"
    rf"(?:\.(?P<patch>{_NUM})"
    rf"(?:-(?P<pre>{_IDENT}(?:\.{_IDENT})*))?"
    rf"(?:\+(?P<build>{_IDENT}(?:\.{_IDENT})*))?"
    r")?)?$"
)


def _parse(version: str) -> Optional[tuple[int, int, int, Optional[str]]]:
    match = _SEMVER_RE.match(version)
    if not match:
        return None
    minor, patch = match.group("minor"), match.group("patch")
    pre = match.group("pre")
    if pre:
        # Numeric prerelease identifiers must not carry leading zeros.
        for ident in pre.split("."):
            if ident.isdigit() and len(ident) > 1 and ident[0] == "0":
                return None
    return int(match.group("major")), int(minor or 0), int(patch or 0), pre


def normalize(version: str) -> str:
    """Add the leading ``v`` when the bare form is a valid version."""
    version = version.strip()
    if not version.startswith("v") and is_valid("v" + version):
        return "v" + version
    return version


def is_valid(version: str) -> bool:
    return _parse(version) is not None


def canonical(version: str) -> str:
    """Full ``vX.Y.Z[-pre]`` form with build metadata dropped; "" if invalid."""
    parsed = _parse(version)
    if parsed is None:
        return ""
    major, minor, patch, pre = parsed
    base = f"v{major}.{minor}.{patch}"
    return f"{base}-{pre}" if pre else base


def _compare_prerelease(a: Optional[str], b: Optional[str]) -> int:
    if a == b:
        return 0
    # A release outranks any of its prereleases.
    if a is None:
        return 1
    if b is None:
        return -1
    left, right = a.split("."), b.split(".")
    for x, y in zip(left, right):
        if x == y:
            continue
        x_num, y_num = x.isdigit(), y.isdigit()
        if x_num and y_num:
            return -1 if int(x) < int(y) else 1
        if x_num != y_num:
            return -1 if x_num else 1
        return -1 if x < y else 1
    if len(left) == len(right):
        return 0
    return -1 if len(left) < len(right) else 1


def compare(a: str, b: str) -> int:
    """Return -1, 0 or 1. Invalid versions sort below every valid one and equal each other."""
    pa, pb = _parse(a), _parse(b)
    if pa is None or pb is None:
        if pa is None and pb is None:
            return 0
        return -1 if pa is None else 1
    if pa[:3] != pb[:3]:
        return -1 if pa[:3] < pb[:3] else 1
    return _compare_prerelease(pa[3], pb[3])


def sort_versions(versions: Iterable[str]) -> list[str]:
    return sorted(versions, key=cmp_to_key(compare))


def valid_versions(candidates: Iterable[str]) -> list[str]:
    """Normalize every candidate and keep only the valid ones."""
    return [v for v in (normalize(c) for c in candidates) if is_valid(v)]


def latest(candidates: Iterable[str]) -> Optional[str]:
    """Greatest valid version among *candidates*, or None when none is valid."""
    versions = valid_versions(candidates)
    if not versions:
        return None
    return sort_versions(versions)[-1]


def is_older(current: str, target: str) -> bool:
    """True when *current* sorts strictly below *target* after normalization."""
    return compare(normalize(current), normalize(target)) < 0

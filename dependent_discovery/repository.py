"""Map module identifiers onto hosting-provider repositories."""

import re

HOSTING_PROVIDERS = ("github.com", "gitlab.com", "bitbucket.org")

DEFAULT_SERVER_URL = "https://github.com"

_MAJOR_VERSION_SUFFIX = re.compile(r"^v[0-9]+$")


def infer_repository(module_path: str) -> str:
    """
    Repository for a module identifier.

      - "github.com/acme/lib/v2" → "acme/lib"
      - "go.uber.org/zap"        → "go.uber.org/zap" (unknown host, kept whole)
    """
    parts = module_path.split("/")
    if len(parts) >= 3 and parts[0] in HOSTING_PROVIDERS:
        return "/".join(parts[1:3])
    return module_path


def module_short_name(module_path: str) -> str:
    """Last identifier segment, skipping a major-version suffix: "github.com/acme/lib/v2" → "lib"."""
    parts = [p for p in module_path.split("/") if p]
    if len(parts) > 1 and _MAJOR_VERSION_SUFFIX.match(parts[-1]):
        parts.pop()
    return parts[-1] if parts else module_path


def infer_local_module_path(module_path: str) -> str:
    """Module location inside its repository: segments past host/owner/name, else "."."""
    parts = module_path.split("/")
    if len(parts) >= 4 and parts[0] in HOSTING_PROVIDERS:
        return "/".join(parts[3:])
    return "."


def build_clone_url(repo: str, server_url: str = DEFAULT_SERVER_URL) -> str:
    """Turn an ``owner/name`` shorthand into an HTTPS URL; anything else passes through."""
    if repo.startswith(("https://", "http://", "git@")):
        return repo
    if repo.count("/") == 1:
        return f"{server_url.rstrip('/')}/{repo}"
    return repo

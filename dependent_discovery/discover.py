from typing import Optional, Protocol

from .config import GitHubConfig
from .github import GitHubDiscovery
from .github_client import GitHubClient
from .models import DependentDescriptor, DiscoverySource, VersionResolution
from .repository import DEFAULT_SERVER_URL
from .workspace import WorkspaceDiscovery


class DependentDiscovery(Protocol):
    """What every discovery substrate offers."""

    async def discover_dependents(self, request) -> list[DependentDescriptor]:
        ...

    async def resolve_version(self, request) -> VersionResolution:
        ...


def select_discovery(
    source: DiscoverySource | str,
    client: Optional[GitHubClient] = None,
    config: Optional[GitHubConfig] = None,
    concurrency: int = 1,
) -> DependentDiscovery:
    """
    Build the discovery engine for *source*.

    Args:
        source: ``workspace`` or ``github``.
        client: GitHub API client, required for ``github``.
        config: Supplies the server URL used for clone URLs; optional.
        concurrency: Upper bound on in-flight probes.

    Raises:
        ValueError: unknown source, or ``github`` without a client.
    """
    source = DiscoverySource(source)
    server_url = config.server_url if config else DEFAULT_SERVER_URL

    match source:
        case DiscoverySource.WORKSPACE:
            return WorkspaceDiscovery(concurrency=concurrency, server_url=server_url)
        case DiscoverySource.GITHUB:
            if client is None:
                raise ValueError("github discovery requires a GitHub client")
            return GitHubDiscovery(client, server_url=server_url, concurrency=concurrency)

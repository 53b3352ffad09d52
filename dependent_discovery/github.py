"""Dependent discovery and version resolution across a GitHub organization.

Flow: rate-limit preflight → repository search (paged, filtered, capped) →
per-repository code search for declaration files → parse the first one that
requires the target.
"""

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from typing import Optional

from . import semver, toolchain
from .declarations import DECLARATION_FILE, Declaration, parse_declaration
from .errors import (
    AuthenticationError,
    DiscoveryInputError,
    NoSemverTagsError,
    NoTagsError,
    ProviderError,
    ProxyResponseError,
    RateLimitError,
    ToolchainError,
    VersionResolutionError,
)
from .github_client import GitHubClient, RateLimit
from .models import (
    DependentDescriptor,
    DiscoverySource,
    GitHubDiscoveryRequest,
    GitHubVersionRequest,
    RemoteVersionStrategy,
    VersionResolution,
    VersionSource,
)
from .patterns import name_included
from .repository import build_clone_url, infer_local_module_path

log = logging.getLogger(__name__)

CRITICAL_QUOTA_RATIO = 0.10
MODERATE_QUOTA_RATIO = 0.50

DEFAULT_CONCURRENCY = 1


@dataclass
class RemoteRepository:
    """A repository returned by the organization search."""
    owner: str
    name: str
    full_name: str
    default_branch: str
    language: str = ""
    private: bool = False

    @property
    def inferred_module_path(self) -> str:
        return f"github.com/{self.full_name}"


def is_quota_critical(quota: RateLimit) -> bool:
    return quota.remaining < quota.limit * CRITICAL_QUOTA_RATIO


def is_quota_moderate(quota: RateLimit) -> bool:
    return quota.remaining < quota.limit * MODERATE_QUOTA_RATIO


def build_search_query(request: GitHubDiscoveryRequest) -> str:
    """Caller's raw query (or the default Go filters) scoped to the organization."""
    terms = [request.search_query] if request.search_query else ["language:go", f"filename:{DECLARATION_FILE}"]
    terms.append(f"org:{request.organization}")
    return " ".join(terms)


def _split_full_name(repository: str) -> tuple[str, str]:
    parts = repository.split("/")
    if len(parts) != 2 or not all(parts):
        raise DiscoveryInputError(f"invalid repository format: expected owner/repo, got {repository}")
    return parts[0], parts[1]


class GitHubDiscovery:
    """Finds dependents through the GitHub search API.

    Usage:
        async with GitHubClient(config) as gh:
            discovery = GitHubDiscovery(gh, server_url=config.server_url)
            dependents = await discovery.discover_dependents(GitHubDiscoveryRequest(...))
    """

    def __init__(
        self,
        client: GitHubClient,
        server_url: str = "https://github.com",
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._client = client
        self._server_url = server_url.rstrip("/")
        self._concurrency = concurrency

    async def validate_authentication(self) -> None:
        """Raise AuthenticationError unless the token identifies a user."""
        try:
            user = await self._client.authenticated_user()
        except AuthenticationError:
            raise
        except ProviderError as e:
            raise ProviderError(f"GitHub authentication validation failed: {e}") from e
        if not user.get("login"):
            raise AuthenticationError("GitHub authentication succeeded but user information is unavailable")

    async def check_rate_limit(self) -> RateLimit:
        """Fail fast when less than 10% of the core quota is left; warn below 50%."""
        try:
            quota = await self._client.rate_limit()
        except ProviderError as e:
            if " 401 " in f" {e} ":
                raise AuthenticationError(
                    "GitHub authentication failed: unable to check rate limits due to invalid or expired token"
                ) from e
            raise ProviderError(
                f"failed to get GitHub API rate limits (network issue or GitHub outage?): {e}"
            ) from e

        if is_quota_critical(quota):
            raise RateLimitError(
                f"GitHub API rate limit critically low: {quota.remaining}/{quota.limit} remaining "
                f"({quota.used_percent:.1f}% used), {quota.describe_reset()}",
                remaining=quota.remaining,
                limit=quota.limit,
                reset=quota.reset,
            )
        if is_quota_moderate(quota):
            log.warning(
                "GitHub API rate limit at %.1f%% usage (%d/%d remaining)",
                quota.used_percent, quota.remaining, quota.limit,
            )
        return quota

    # -- discovery --

    async def discover_dependents(self, request: GitHubDiscoveryRequest) -> list[DependentDescriptor]:
        if not request.organization:
            raise DiscoveryInputError("GitHub organization is required")
        if not request.target_module:
            raise DiscoveryInputError("target module is required")

        t0 = time.monotonic()
        await self.check_rate_limit()
        repos = await self.search_repositories(request)

        sem = asyncio.Semaphore(self._concurrency)

        async def _probe(repo: RemoteRepository) -> Optional[DependentDescriptor]:
            async with sem:
                return await self._probe_repository(repo, request)

        probed = await asyncio.gather(*(_probe(r) for r in repos))
        dependents = [d for d in probed if d is not None]

        log.info(
            "%d/%d repositories in %s depend on %s (%.1fs)",
            len(dependents), len(repos), request.organization, request.target_module,
            time.monotonic() - t0,
        )
        return dependents

    async def search_repositories(self, request: GitHubDiscoveryRequest) -> list[RemoteRepository]:
        """All filtered search hits, truncated to ``max_results`` when set."""
        query = build_search_query(request)
        log.info("Searching GitHub: %s", query)

        repos: list[RemoteRepository] = []
        async with aclosing(self._client.search_repositories(query)) as pages:
            async for page in pages:
                for item in page:
                    name = item.get("name", "")
                    if not name_included(name, request.include_patterns, request.exclude_patterns):
                        continue
                    repos.append(RemoteRepository(
                        owner=(item.get("owner") or {}).get("login", ""),
                        name=name,
                        full_name=item.get("full_name", ""),
                        default_branch=item.get("default_branch", ""),
                        language=item.get("language") or "",
                        private=bool(item.get("private")),
                    ))
                    if request.max_results > 0 and len(repos) >= request.max_results:
                        return repos[:request.max_results]
        return repos

    async def _probe_repository(
        self,
        repo: RemoteRepository,
        request: GitHubDiscoveryRequest,
    ) -> Optional[DependentDescriptor]:
        try:
            found = await self.find_dependency(repo, request.target_module)
        except Exception as e:
            log.debug("Skipping %s: probe failed: %s", repo.full_name, e)
            return None
        if found is None:
            return None

        decl, file_path = found
        module_path = decl.module or repo.inferred_module_path
        if module_path == request.target_module:
            return None

        current = decl.dependency_version(request.target_module)
        if request.target_version and current and not semver.is_older(current, request.target_version):
            log.debug("Skipping %s: already at %s", repo.full_name, current)
            return None

        log.debug("%s depends on %s via %s", repo.full_name, request.target_module, file_path)
        return DependentDescriptor(
            repository=repo.full_name,
            clone_url=build_clone_url(repo.full_name, self._server_url),
            module_path=module_path,
            local_module_path=infer_local_module_path(module_path),
            current_version=current or None,
            branch=repo.default_branch or None,
            discovery_source=DiscoverySource.GITHUB,
        )

    async def find_dependency(self, repo: RemoteRepository, target: str) -> Optional[tuple[Declaration, str]]:
        """First declaration file in *repo* requiring *target*, with its path.

        A file that cannot be fetched or decoded is skipped.
        """
        query = f"filename:{DECLARATION_FILE} repo:{repo.full_name}"
        results = await self._client.search_code(query)

        for result in results:
            path = result.get("path", "")
            try:
                text = await self._client.get_file_content(
                    repo.owner, repo.name, path, ref=repo.default_branch or None,
                )
            except (ProviderError, ValueError) as e:
                log.debug("Cannot read %s/%s: %s", repo.full_name, path, e)
                continue
            decl = parse_declaration(text)
            if decl.depends_on(target):
                return decl, path
        return None

    # -- version resolution --

    async def resolve_version(self, request: GitHubVersionRequest) -> VersionResolution:
        if not request.repository:
            raise DiscoveryInputError("repository is required")
        if not request.target_module:
            raise DiscoveryInputError("target module is required")

        await self.check_rate_limit()
        resolution = VersionResolution()

        match request.strategy:
            case RemoteVersionStrategy.TAGS:
                return await self.resolve_from_tags(request.repository, resolution)
            case RemoteVersionStrategy.PROXY:
                try:
                    return await self.resolve_from_proxy(request.target_module, resolution)
                except VersionResolutionError as e:
                    if not request.fallback_to_tags:
                        raise
                    resolution.warnings.append(f"Go proxy resolution failed ({e}), falling back to Git tags")
                    log.warning("Proxy lookup for %s failed, using tags: %s", request.target_module, e)
                return await self.resolve_from_tags(request.repository, resolution)
            case RemoteVersionStrategy.GIT_REMOTE:
                return await self.resolve_from_git_remote(request.repository, resolution)
            case _:
                raise DiscoveryInputError(f"unsupported GitHub version resolution strategy: {request.strategy}")

    async def resolve_from_tags(self, repository: str, resolution: VersionResolution) -> VersionResolution:
        owner, name = _split_full_name(repository)
        tags = await self._client.list_tags(owner, name)
        if not tags:
            raise NoTagsError(f"no tags found for repository {repository}", resolution.warnings)

        latest = semver.latest(tags)
        if latest is None:
            raise NoSemverTagsError(f"no semantic version tags found for repository {repository}", resolution.warnings)

        resolution.version = latest
        resolution.source = VersionSource.NETWORK
        return resolution

    async def resolve_from_proxy(self, target: str, resolution: VersionResolution) -> VersionResolution:
        try:
            output = await toolchain.go_list_versions(target, env=toolchain.proxy_env())
        except ToolchainError as e:
            raise VersionResolutionError(f"failed to query Go module proxy for {target}: {e}", resolution.warnings) from e

        versions = toolchain.parse_version_listing(output)
        if versions is None:
            raise ProxyResponseError(f"unexpected output from go list -m -versions for {target}", resolution.warnings)
        if not versions:
            raise VersionResolutionError(f"no versions found in Go module proxy for {target}", resolution.warnings)

        latest = semver.latest(versions)
        if latest is None:
            raise VersionResolutionError(f"no semantic versions found in Go module proxy for {target}", resolution.warnings)

        resolution.version = latest
        resolution.source = VersionSource.NETWORK
        return resolution

    async def resolve_from_git_remote(self, repository: str, resolution: VersionResolution) -> VersionResolution:
        _split_full_name(repository)
        url = f"{self._server_url}/{repository}.git"
        try:
            tags = await toolchain.git_ls_remote_tags(url)
        except ToolchainError as e:
            raise VersionResolutionError(f"failed to run git ls-remote --tags for {repository}: {e}", resolution.warnings) from e
        if not tags:
            raise NoTagsError(f"no tags found for repository {repository}", resolution.warnings)

        latest = semver.latest(tags)
        if latest is None:
            raise NoSemverTagsError(f"no semantic version tags found for repository {repository}", resolution.warnings)

        resolution.version = latest
        resolution.source = VersionSource.NETWORK
        resolution.warnings.append("Version resolved using git ls-remote (requires network access)")
        return resolution

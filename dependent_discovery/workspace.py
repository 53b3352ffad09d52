"""Dependent discovery over a local workspace of checked-out repositories."""

import asyncio
import logging
import time
from typing import Optional

from . import prober, resolver, semver
from .errors import DiscoveryInputError
from .models import (
    DependentDescriptor,
    DiscoveredModule,
    DiscoveryRequest,
    DiscoverySource,
    VersionRequest,
    VersionResolution,
)
from .repository import DEFAULT_SERVER_URL, build_clone_url, infer_local_module_path
from .scanner import find_modules

log = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 1


class WorkspaceDiscovery:
    """Finds dependents by walking a directory tree and probing each module.

    Usage:
        discovery = WorkspaceDiscovery()
        dependents = await discovery.discover_dependents(DiscoveryRequest(...))
    """

    def __init__(self, concurrency: int = DEFAULT_CONCURRENCY, server_url: str = DEFAULT_SERVER_URL):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._concurrency = concurrency
        self._server_url = server_url

    async def discover_dependents(self, request: DiscoveryRequest) -> list[DependentDescriptor]:
        if not request.workspace_dir:
            raise DiscoveryInputError("workspace directory is required")
        if not request.target_module:
            raise DiscoveryInputError("target module is required")

        t0 = time.monotonic()
        modules = find_modules(
            request.workspace_dir,
            max_depth=request.max_depth,
            include=request.include_patterns,
            exclude=request.exclude_patterns,
        )
        candidates = [m for m in modules if m.module_path != request.target_module]
        log.info("Found %d modules under %s", len(modules), request.workspace_dir)

        sem = asyncio.Semaphore(self._concurrency)

        async def _probe(module: DiscoveredModule) -> Optional[DependentDescriptor]:
            async with sem:
                return await self._probe_module(module, request)

        probed = await asyncio.gather(*(_probe(m) for m in candidates))
        dependents = [d for d in probed if d is not None]
        if request.max_results > 0:
            dependents = dependents[:request.max_results]

        log.info(
            "%d/%d modules depend on %s (%.1fs)",
            len(dependents), len(candidates), request.target_module, time.monotonic() - t0,
        )
        return dependents

    async def _probe_module(
        self,
        module: DiscoveredModule,
        request: DiscoveryRequest,
    ) -> Optional[DependentDescriptor]:
        """Descriptor for *module* if it needs the update, None otherwise or on any failure."""
        target = request.target_module
        try:
            if not await prober.has_dependency(module.path, target):
                return None
            current = await prober.dependency_version(module.path, target)
        except Exception as e:
            log.debug("Skipping %s: probe failed: %s", module.path, e)
            return None

        if request.target_version and current:
            if not semver.is_older(current, request.target_version):
                log.debug(
                    "Skipping %s: already at %s (target %s)",
                    module.module_path, current, request.target_version,
                )
                return None

        return DependentDescriptor(
            repository=module.repository,
            clone_url=build_clone_url(module.repository, self._server_url),
            module_path=module.module_path,
            local_module_path=infer_local_module_path(module.module_path),
            current_version=current or None,
            discovery_source=DiscoverySource.WORKSPACE,
        )

    async def resolve_version(self, request: VersionRequest) -> VersionResolution:
        return await resolver.resolve_version(request)

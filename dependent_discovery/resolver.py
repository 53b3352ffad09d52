"""Resolve a target module's version from a local workspace.

Strategies:
  local  → first version pinned by any workspace module (module order is not
           guaranteed, so with conflicting pins the winner is arbitrary)
  latest → greatest semantic version the module registry lists (needs network)
  auto   → local, then latest if network is allowed; warnings record each miss
"""

import logging

from . import prober, semver, toolchain
from .errors import DiscoveryInputError, ProxyResponseError, ToolchainError, VersionResolutionError
from .models import VersionRequest, VersionResolution, VersionSource, VersionStrategy
from .scanner import find_modules

log = logging.getLogger(__name__)


async def resolve_local(workspace_dir: str, target: str, resolution: VersionResolution) -> VersionResolution:
    modules = find_modules(workspace_dir)
    for module in modules:
        try:
            version = await prober.dependency_version(module.path, target)
        except (OSError, UnicodeDecodeError) as e:
            log.debug("Cannot read %s: %s", module.path, e)
            continue
        if version:
            resolution.version = version
            resolution.source = VersionSource.LOCAL
            resolution.source_path = module.path
            log.info("Resolved %s@%s from %s", target, version, module.path)
            return resolution

    raise VersionResolutionError(
        f"module {target} not found in any workspace dependencies",
        resolution.warnings,
    )


async def resolve_latest(target: str, resolution: VersionResolution) -> VersionResolution:
    try:
        output = await toolchain.go_list_versions(target)
    except ToolchainError as e:
        raise VersionResolutionError(f"failed to list module versions: {e}", resolution.warnings) from e

    versions = toolchain.parse_version_listing(output)
    if versions is None:
        raise ProxyResponseError(f"unexpected version listing format for {target}", resolution.warnings)
    if not versions:
        raise VersionResolutionError(f"no versions available for module {target}", resolution.warnings)

    latest = semver.latest(versions)
    if latest is None:
        raise VersionResolutionError(f"no semantic versions available for module {target}", resolution.warnings)

    resolution.version = latest
    resolution.source = VersionSource.NETWORK
    log.info("Resolved %s@%s from the module registry", target, latest)
    return resolution


async def resolve_version(request: VersionRequest) -> VersionResolution:
    """Run the requested strategy. Raises VersionResolutionError carrying warnings on failure."""
    if not request.target_module:
        raise DiscoveryInputError("target module is required")
    if not request.workspace_dir:
        raise DiscoveryInputError("workspace directory is required")

    resolution = VersionResolution()
    target = request.target_module

    match request.strategy:
        case VersionStrategy.LOCAL:
            return await resolve_local(request.workspace_dir, target, resolution)

        case VersionStrategy.LATEST:
            if not request.allow_network:
                raise VersionResolutionError("latest version resolution requires network access")
            return await resolve_latest(target, resolution)

        case VersionStrategy.AUTO:
            try:
                return await resolve_local(request.workspace_dir, target, resolution)
            except VersionResolutionError as e:
                resolution.warnings.append(f"Local resolution failed: {e}")

            if request.allow_network:
                try:
                    return await resolve_latest(target, resolution)
                except VersionResolutionError as e:
                    resolution.warnings.append(f"Network resolution failed: {e}")
            else:
                resolution.warnings.append("Network access not allowed, cannot resolve latest version")

            raise VersionResolutionError(
                f"failed to resolve version of {target} using auto strategy",
                resolution.warnings,
            )

        case _:
            raise DiscoveryInputError(f"unsupported version resolution strategy: {request.strategy}")

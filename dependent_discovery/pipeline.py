"""End-to-end pipeline: discover dependents → resolve target version → generate manifest → validate.

Discovery and resolution are independent; both feed the generated manifest,
which is validated before being returned.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from .discover import DependentDiscovery
from .errors import DiscoveryInputError
from .generator import GenerateOptions, generate_manifest
from .manifest import Manifest
from .models import DependentDescriptor, VersionResolution, VersionSource
from .repository import infer_repository, module_short_name
from .validate import validate

log = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything one pipeline run produced."""
    dependents: list[DependentDescriptor]
    resolution: VersionResolution
    manifest: Manifest
    timings: dict[str, float] = field(default_factory=dict)  # phase → seconds


async def run_pipeline(
    discovery: DependentDiscovery,
    discovery_request,
    version_request=None,
    module_name: Optional[str] = None,
    repository: str = "",
    options: Optional[GenerateOptions] = None,
) -> PipelineResult:
    """Run discovery and version resolution, then build and validate a manifest.

    Args:
        discovery: Engine for the chosen substrate.
        discovery_request: Request handed to ``discover_dependents``.
        version_request: Request handed to ``resolve_version``. When omitted the
            discovery request's ``target_version`` is used as is.
        module_name: Manifest module name, defaults to the last identifier segment
            ignoring a major-version suffix.
        repository: owner/name of the target module's repository.
        options: Extra manifest defaults; module fields and dependents are filled in here.

    Raises VersionResolutionError, ManifestValidationError or the engine's errors.
    """
    target = discovery_request.target_module
    timings: dict[str, float] = {}
    t0 = time.monotonic()

    dependents = await discovery.discover_dependents(discovery_request)
    timings["discover"] = time.monotonic() - t0
    log.info("--- Discovery (%.1fs) ---", timings["discover"])
    for d in dependents:
        log.info("  %s (%s) pins %s", d.repository, d.module_path, d.current_version or "?")

    t1 = time.monotonic()
    if version_request is not None:
        resolution = await discovery.resolve_version(version_request)
    elif discovery_request.target_version:
        resolution = VersionResolution(version=discovery_request.target_version, source=VersionSource.FALLBACK)
    else:
        raise DiscoveryInputError("a version request or a target version is required")
    timings["resolve"] = time.monotonic() - t1
    log.info("--- Version resolution (%.1fs) ---", timings["resolve"])
    log.info("  %s@%s (source: %s)", target, resolution.version, resolution.source.value if resolution.source else "unknown")
    for warning in resolution.warnings:
        log.warning("  %s", warning)

    t2 = time.monotonic()
    base = options or GenerateOptions(module_name="", module_path="", repository="")
    manifest = generate_manifest(base.model_copy(update={
        "module_name": module_name or module_short_name(target),
        "module_path": target,
        "repository": repository or base.repository or infer_repository(target),
        "version": resolution.version,
        "dependents": dependents,
    }))
    validate(manifest)
    timings["manifest"] = time.monotonic() - t2

    timings["total"] = time.monotonic() - t0
    log.info("--- Pipeline complete (%.1fs) ---", timings["total"])

    return PipelineResult(
        dependents=dependents,
        resolution=resolution,
        manifest=manifest,
        timings=timings,
    )

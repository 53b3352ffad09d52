from .defaults import expand_defaults, expand_module_dependents
from .discover import DependentDiscovery, select_discovery
from .generator import GenerateOptions, generate_manifest
from .github import GitHubDiscovery
from .manifest import Manifest, load_manifest, dump_manifest
from .models import (
    DependentDescriptor,
    DiscoveryRequest,
    DiscoverySource,
    GitHubDiscoveryRequest,
    GitHubVersionRequest,
    VersionRequest,
    VersionResolution,
)
from .pipeline import PipelineResult, run_pipeline
from .validate import validate
from .workspace import WorkspaceDiscovery

__all__ = [
    "expand_defaults",
    "expand_module_dependents",
    "DependentDiscovery",
    "select_discovery",
    "GenerateOptions",
    "generate_manifest",
    "GitHubDiscovery",
    "Manifest",
    "load_manifest",
    "dump_manifest",
    "DependentDescriptor",
    "DiscoveryRequest",
    "DiscoverySource",
    "GitHubDiscoveryRequest",
    "GitHubVersionRequest",
    "VersionRequest",
    "VersionResolution",
    "PipelineResult",
    "run_pipeline",
    "validate",
    "WorkspaceDiscovery",
]

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .manifest import Command, Notifications, PRConfig


class DiscoverySource(str, Enum):
    WORKSPACE = "workspace"
    GITHUB = "github"


class VersionStrategy(str, Enum):
    """Workspace resolution strategies."""
    LOCAL = "local"
    LATEST = "latest"
    AUTO = "auto"


class RemoteVersionStrategy(str, Enum):
    """GitHub resolution strategies."""
    TAGS = "tags"
    PROXY = "proxy"
    GIT_REMOTE = "git-remote"


class VersionSource(str, Enum):
    LOCAL = "local"
    NETWORK = "network"
    FALLBACK = "fallback"


class DiscoveredModule(BaseModel):
    path: str = Field(description="Filesystem path of the module root")
    module_path: str = Field(description="Module identifier from the declaration file")
    repository: str = Field(description="Repository inferred from the module identifier")


class DiscoveryRequest(BaseModel):
    """Local workspace discovery input."""
    model_config = ConfigDict(frozen=True)

    workspace_dir: str
    target_module: str
    target_version: Optional[str] = Field(
        default=None,
        description="When set, dependents already at or past this version are dropped",
    )
    max_depth: int = Field(default=0, description="Path-separator depth limit below the root, 0 = unlimited")
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    max_results: int = Field(default=0, description="0 = no cap")


class GitHubDiscoveryRequest(BaseModel):
    """Remote organization discovery input."""
    model_config = ConfigDict(frozen=True)

    organization: str
    target_module: str
    target_version: Optional[str] = None
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    max_results: int = Field(default=0, description="Cap on repositories returned by search, 0 = no cap")
    search_query: str = Field(default="", description="Raw query used verbatim in place of the default filters")


class VersionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    workspace_dir: str
    target_module: str
    strategy: VersionStrategy = VersionStrategy.AUTO
    allow_network: bool = False


class GitHubVersionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    repository: str = Field(description="owner/name")
    target_module: str
    strategy: RemoteVersionStrategy = RemoteVersionStrategy.TAGS
    fallback_to_tags: bool = Field(
        default=False,
        description="With the proxy strategy, retry through tags when the proxy fails",
    )


class DependentDescriptor(BaseModel):
    """One repository that depends on the target module, as handed to manifest generation."""
    repository: str
    clone_url: str = ""
    module_path: str = Field(description="Module identifier of the dependent")
    local_module_path: str = Field(default=".", description="Module location inside the repository")
    current_version: Optional[str] = Field(default=None, description="Version of the target the dependent pins")
    branch: Optional[str] = None
    tests: list[Command] = Field(default_factory=list)
    extra_commands: list[Command] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    notifications: Notifications = Field(default_factory=Notifications)
    pr: PRConfig = Field(default_factory=PRConfig)
    env: dict[str, str] = Field(default_factory=dict)
    discovery_source: Optional[DiscoverySource] = None


class VersionResolution(BaseModel):
    version: str = ""
    source: Optional[VersionSource] = None
    source_path: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

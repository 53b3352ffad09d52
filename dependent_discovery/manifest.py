"""Dependency-update manifest: data model, YAML shim and lookups.

The manifest is a tree: ``Manifest`` owns ``Module`` entries, each ``Module``
owns ``Dependent`` entries. Unset dependent fields are filled from the module's
effective defaults (see ``defaults.py``).
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ManifestLoadError, ManifestModuleNotFound

SUPPORTED_MANIFEST_VERSION = 1
MANIFEST_FILE_NAME = ".dependents.yaml"


class Command(BaseModel):
    model_config = ConfigDict(frozen=True)

    cmd: list[str]
    dir: str = ""


class PRConfig(BaseModel):
    title: str = ""
    body_template: str = ""
    reviewers: Optional[list[str]] = None
    team_reviewers: Optional[list[str]] = None


class Notifications(BaseModel):
    slack_channel: str = ""
    webhook: str = ""
    on_failure: bool = False
    on_success: bool = False


class Defaults(BaseModel):
    branch: str = ""
    tests: list[Command] = Field(default_factory=list)
    extra_commands: list[Command] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    commit_template: str = ""
    notifications: Notifications = Field(default_factory=Notifications)
    pr: PRConfig = Field(default_factory=PRConfig)


class Dependent(BaseModel):
    repo: str = ""
    clone_url: str = ""
    module: str = Field(default="", description="Module identifier of the dependent itself")
    module_path: str = Field(default="", description="Module location inside the dependent repo")
    branch: str = ""
    tests: Optional[list[Command]] = None
    extra_commands: Optional[list[Command]] = None
    labels: Optional[list[str]] = None
    notifications: Notifications = Field(default_factory=Notifications)
    pr: PRConfig = Field(default_factory=PRConfig)
    canary: bool = False
    skip: bool = False
    env: dict[str, str] = Field(default_factory=dict)


class Module(BaseModel):
    name: str = ""
    module: str = Field(default="", description="Module identifier")
    repo: str = ""
    release_artifact: str = ""
    defaults: Optional[Defaults] = Field(default=None, description="Module-wide overrides of the manifest defaults")
    dependents: Optional[list[Dependent]] = None


class Manifest(BaseModel):
    manifest_version: int = 0
    defaults: Defaults = Field(default_factory=Defaults)
    modules: Optional[list[Module]] = None


def load_manifest(path: str | Path) -> Manifest:
    """Read a manifest YAML file into the model. Shape checks are left to ``validate``."""
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ManifestLoadError(str(path), str(e)) from e
    except yaml.YAMLError as e:
        raise ManifestLoadError(str(path), f"invalid YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ManifestLoadError(str(path), "top level must be a mapping")
    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestLoadError(str(path), str(e)) from e


def dump_manifest(manifest: Manifest, path: str | Path | None = None) -> str:
    """Serialize to YAML, omitting unset values. Writes to *path* when given."""
    data = manifest.model_dump(mode="json", exclude_none=True, exclude_defaults=True)
    data["manifest_version"] = manifest.manifest_version
    text = yaml.safe_dump(data, sort_keys=False)
    if path is not None:
        Path(path).write_text(text, encoding="utf-8")
    return text


def find_module(manifest: Manifest, name: str) -> Module:
    for module in manifest.modules or []:
        if module.name == name:
            return module
    raise ManifestModuleNotFound(name)


def find_module_by_path(manifest: Manifest, module_path: str) -> Module:
    for module in manifest.modules or []:
        if module.module == module_path:
            return module
    raise ManifestModuleNotFound(module_path)

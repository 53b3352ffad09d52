"""Build a version-1 manifest for one module and its discovered dependents."""

import logging

from pydantic import BaseModel, Field

from .errors import DiscoveryInputError
from .manifest import (
    SUPPORTED_MANIFEST_VERSION,
    Command,
    Defaults,
    Dependent,
    Manifest,
    Module,
    Notifications,
    PRConfig,
)
from .models import DependentDescriptor

log = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
DEFAULT_LABELS = ["automation:dependency-update"]
DEFAULT_COMMIT_TEMPLATE = "chore(deps): bump {{ module }} to {{ version }}"
DEFAULT_PR_TITLE = "chore(deps): bump {{ module }} to {{ version }}"
DEFAULT_PR_BODY = "Automated dependency update for {{ module }} to {{ version }}"
DEFAULT_TEST_COMMAND = Command(cmd=["go", "test", "./...", "-race", "-count=1"])


class GenerateOptions(BaseModel):
    module_name: str = Field(description="Human-friendly module name, e.g. 'go-errors'")
    module_path: str = Field(description="Module identifier")
    repository: str = Field(description="owner/name of the module's repository")
    version: str = ""
    release_artifact: str = ""
    dependents: list[DependentDescriptor] = Field(default_factory=list)

    default_branch: str = ""
    default_labels: list[str] = Field(default_factory=list)
    default_commit_template: str = ""
    default_tests: list[Command] = Field(default_factory=list)
    default_extra_commands: list[Command] = Field(default_factory=list)
    default_notifications: Notifications = Field(default_factory=Notifications)
    default_pr: PRConfig = Field(default_factory=PRConfig)


def build_defaults(options: GenerateOptions) -> Defaults:
    pr = options.default_pr.model_copy(update={
        "title": options.default_pr.title or DEFAULT_PR_TITLE,
        "body_template": options.default_pr.body_template or DEFAULT_PR_BODY,
    })
    return Defaults(
        branch=options.default_branch or DEFAULT_BRANCH,
        tests=list(options.default_tests) or [DEFAULT_TEST_COMMAND],
        extra_commands=list(options.default_extra_commands),
        labels=list(options.default_labels) or list(DEFAULT_LABELS),
        commit_template=options.default_commit_template or DEFAULT_COMMIT_TEMPLATE,
        notifications=options.default_notifications,
        pr=pr,
    )


def _has_notifications(n: Notifications) -> bool:
    return bool(n.slack_channel or n.webhook or n.on_failure or n.on_success)


def _has_pr_config(pr: PRConfig) -> bool:
    return bool(pr.title or pr.body_template or pr.reviewers or pr.team_reviewers)


def build_dependent(descriptor: DependentDescriptor, default_branch: str) -> Dependent:
    """Dependent entry carrying only what differs from the defaults."""
    dependent = Dependent(
        repo=descriptor.repository,
        clone_url=descriptor.clone_url,
        module=descriptor.module_path,
        module_path=descriptor.local_module_path or ".",
    )

    branch = (descriptor.branch or "").strip()
    if branch and branch != default_branch:
        dependent.branch = branch
    if descriptor.tests:
        dependent.tests = list(descriptor.tests)
    if descriptor.extra_commands:
        dependent.extra_commands = list(descriptor.extra_commands)
    if descriptor.labels:
        dependent.labels = list(descriptor.labels)
    if _has_notifications(descriptor.notifications):
        dependent.notifications = descriptor.notifications
    if _has_pr_config(descriptor.pr):
        dependent.pr = descriptor.pr
    if descriptor.env:
        dependent.env = dict(descriptor.env)
    return dependent


def unique_by_repository(descriptors: list[DependentDescriptor]) -> list[DependentDescriptor]:
    """First descriptor per repository; a manifest module lists each repo once."""
    seen: set[str] = set()
    unique = []
    for d in descriptors:
        if d.repository in seen:
            log.debug("Dropping duplicate dependent %s (%s)", d.repository, d.module_path)
            continue
        seen.add(d.repository)
        unique.append(d)
    return unique


def generate_manifest(options: GenerateOptions) -> Manifest:
    if not options.module_name:
        raise DiscoveryInputError("module name is required")
    if not options.module_path:
        raise DiscoveryInputError("module path is required")
    if not options.repository:
        raise DiscoveryInputError("repository is required")

    defaults = build_defaults(options)
    module = Module(
        name=options.module_name,
        module=options.module_path,
        repo=options.repository,
        release_artifact=options.release_artifact,
        dependents=[build_dependent(d, defaults.branch) for d in unique_by_repository(options.dependents)],
    )
    log.info("Generated manifest for %s with %d dependents", options.module_path, len(module.dependents))
    return Manifest(
        manifest_version=SUPPORTED_MANIFEST_VERSION,
        defaults=defaults,
        modules=[module],
    )

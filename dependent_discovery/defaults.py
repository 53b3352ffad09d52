"""Inherit unset dependent settings from module and manifest defaults.

Lists merge defaults-first with duplicates dropped, scalars are filled only
when empty. Both rules make expansion idempotent.
"""

from typing import Optional, TypeVar

from .manifest import Defaults, Dependent, Manifest, Module, Notifications, PRConfig

T = TypeVar("T")


def _merge_list(defaults: Optional[list[T]], own: Optional[list[T]]) -> list[T]:
    merged = list(defaults or [])
    for item in own or []:
        if item not in merged:
            merged.append(item)
    return merged


def merge_notifications(defaults: Notifications, own: Notifications) -> Notifications:
    return own.model_copy(update={
        "slack_channel": own.slack_channel or defaults.slack_channel,
        "webhook": own.webhook or defaults.webhook,
    })


def merge_pr(defaults: PRConfig, own: PRConfig) -> PRConfig:
    update = {
        "title": own.title or defaults.title,
        "body_template": own.body_template or defaults.body_template,
    }
    if own.reviewers is None and defaults.reviewers:
        update["reviewers"] = list(defaults.reviewers)
    if own.team_reviewers is None and defaults.team_reviewers:
        update["team_reviewers"] = list(defaults.team_reviewers)
    return own.model_copy(update=update)


def expand_defaults(dependent: Dependent, defaults: Defaults) -> Dependent:
    """Effective dependent: own values kept, unset ones filled from *defaults*."""
    return dependent.model_copy(update={
        "branch": dependent.branch or defaults.branch,
        "tests": _merge_list(defaults.tests, dependent.tests),
        "extra_commands": _merge_list(defaults.extra_commands, dependent.extra_commands),
        "labels": _merge_list(defaults.labels, dependent.labels),
        "notifications": merge_notifications(defaults.notifications, dependent.notifications),
        "pr": merge_pr(defaults.pr, dependent.pr),
    })


def merge_defaults(base: Defaults, override: Optional[Defaults]) -> Defaults:
    """Module-level *override* layered over manifest-wide *base*."""
    if override is None:
        return base.model_copy(deep=True)
    return Defaults(
        branch=override.branch or base.branch,
        tests=_merge_list(base.tests, override.tests),
        extra_commands=_merge_list(base.extra_commands, override.extra_commands),
        labels=_merge_list(base.labels, override.labels),
        commit_template=override.commit_template or base.commit_template,
        notifications=merge_notifications(base.notifications, override.notifications),
        pr=merge_pr(base.pr, override.pr),
    )


def effective_defaults(manifest: Manifest, module: Module) -> Defaults:
    return merge_defaults(manifest.defaults, module.defaults)


def expand_module_dependents(manifest: Manifest, module: Module) -> list[Dependent]:
    defaults = effective_defaults(manifest, module)
    return [expand_defaults(dep, defaults) for dep in module.dependents or []]

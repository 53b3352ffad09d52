"""Exception types raised by discovery, version resolution and manifest validation."""

from datetime import datetime
from typing import Optional


class DiscoveryError(Exception):
    """Base class for every error this package raises on purpose."""


class DiscoveryInputError(DiscoveryError, ValueError):
    """A required request field is missing or malformed."""


class ToolchainError(DiscoveryError):
    """An external command (go, git) exited non-zero or could not be started."""

    def __init__(self, cmd: list[str], returncode: Optional[int], stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr}" if stderr else ""
        super().__init__(f"{' '.join(cmd)} failed (exit {returncode}){detail}")


class VersionResolutionError(DiscoveryError):
    """Every attempted strategy failed. Carries the warnings gathered on the way."""

    def __init__(self, message: str, warnings: Optional[list[str]] = None):
        self.warnings = list(warnings or [])
        super().__init__(message)


class NoTagsError(VersionResolutionError):
    """The repository has no tags at all."""


class NoSemverTagsError(VersionResolutionError):
    """Tags exist, but none of them is a valid semantic version."""


class ProxyResponseError(VersionResolutionError):
    """The module proxy answered with something we could not read versions from."""


class ProviderError(DiscoveryError):
    """The hosting provider API refused or failed a request."""


class RateLimitError(ProviderError):
    def __init__(
        self,
        message: str,
        remaining: Optional[int] = None,
        limit: Optional[int] = None,
        reset: Optional[datetime] = None,
    ):
        self.remaining = remaining
        self.limit = limit
        self.reset = reset
        super().__init__(message)


class AuthenticationError(ProviderError):
    pass


class ProviderPermissionError(ProviderError):
    pass


class ManifestValidationError(DiscoveryError):
    """Aggregate of every issue found in one validation pass."""

    def __init__(self, issues: list[str]):
        self.issues = list(issues)
        if len(self.issues) == 1:
            message = f"manifest: validation failed: {self.issues[0]}"
        else:
            joined = "\n- ".join(self.issues)
            message = f"manifest: validation failed with {len(self.issues)} issues:\n- {joined}"
        super().__init__(message)


class ManifestLoadError(DiscoveryError):
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"manifest: failed to load {path}: {reason}")


class ManifestModuleNotFound(DiscoveryError, KeyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"manifest: module not found: {name}")

    def __str__(self) -> str:
        return self.args[0]

"""GitHub credentials and endpoints from environment."""

import os
from dataclasses import dataclass

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN", "GITHUB_ACCESS_TOKEN")

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_SERVER_URL = "https://github.com"


def _load_token() -> str:
    """First non-empty token from TOKEN_ENV_VARS, in that order."""
    for var in TOKEN_ENV_VARS:
        token = os.getenv(var, "").strip()
        if token:
            return token
    return ""


@dataclass(frozen=True)
class GitHubConfig:
    token: str
    api_url: str = DEFAULT_API_URL
    server_url: str = DEFAULT_SERVER_URL

    @classmethod
    def from_env(cls) -> "GitHubConfig":
        """Load from environment variables.

        Token: GITHUB_TOKEN, then GH_TOKEN, then GITHUB_ACCESS_TOKEN.
        Optional: GITHUB_API_URL (GitHub Enterprise API), GITHUB_SERVER_URL (web/clone host).
        """
        token = _load_token()
        if not token:
            raise ValueError(f"GitHub token not found: set one of {', '.join(TOKEN_ENV_VARS)}")

        return cls(
            token=token,
            api_url=os.getenv("GITHUB_API_URL", "").rstrip("/") or DEFAULT_API_URL,
            server_url=os.getenv("GITHUB_SERVER_URL", "").rstrip("/") or DEFAULT_SERVER_URL,
        )

    def __repr__(self) -> str:
        return (
            f"GitHubConfig(token='***', api_url={self.api_url!r}, "
            f"server_url={self.server_url!r})"
        )

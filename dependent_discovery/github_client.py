"""Async GitHub REST client: search, contents, tags and rate-limit introspection.

No request is retried here. Failures are rewritten into ProviderError
subclasses with an actionable message; backing off is the caller's decision.
"""

import base64
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

import httpx

from .config import GitHubConfig
from .errors import AuthenticationError, ProviderError, ProviderPermissionError, RateLimitError

log = logging.getLogger(__name__)

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

SEARCH_PAGE_SIZE = 100
CODE_SEARCH_PAGE_SIZE = 10
TAGS_PAGE_SIZE = 100


@dataclass(frozen=True)
class RateLimit:
    limit: int
    remaining: int
    reset: datetime

    @property
    def used_percent(self) -> float:
        if self.limit <= 0:
            return 100.0
        return (self.limit - self.remaining) / self.limit * 100

    def describe_reset(self) -> str:
        """Human form, e.g. ``resets in 12m at 14:05:00 UTC``."""
        minutes = max(round((self.reset - datetime.now(timezone.utc)).total_seconds() / 60), 0)
        return f"resets in {minutes}m at {self.reset.strftime('%H:%M:%S UTC')}"


def _parse_next_link(link_header: str) -> Optional[str]:
    match = _NEXT_LINK_RE.search(link_header)
    return match.group(1) if match else None


def _error_text(response: httpx.Response) -> str:
    try:
        message = response.json().get("message", "")
    except (ValueError, AttributeError):
        message = response.text[:200]
    return f"{response.request.method} {response.request.url.path}: {response.status_code} {message}".strip()


class GitHubClient:
    """Thin async wrapper around the GitHub REST API.

    Usage:
        async with GitHubClient(config) as gh:
            limit = await gh.rate_limit()
    """

    def __init__(self, config: GitHubConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.api_url,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "Authorization": f"Bearer {config.token}",
            },
            timeout=30.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # -- endpoints --

    async def rate_limit(self) -> RateLimit:
        """Core API quota."""
        response = await self._request("/rate_limit", classify=False)
        data = response.json()
        core = (data.get("resources") or {}).get("core") or data.get("rate") or {}
        return RateLimit(
            limit=int(core.get("limit", 0)),
            remaining=int(core.get("remaining", 0)),
            reset=datetime.fromtimestamp(int(core.get("reset", 0)), tz=timezone.utc),
        )

    async def authenticated_user(self) -> dict[str, Any]:
        return await self._get_json("/user")

    async def search_repositories(self, query: str) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield one page of repository search results at a time, following ``Link: rel="next"``."""
        url: Optional[str] = "/search/repositories"
        params: Optional[dict[str, Any]] = {
            "q": query,
            "sort": "updated",
            "order": "desc",
            "per_page": SEARCH_PAGE_SIZE,
        }
        page = 0
        while url:
            response = await self._request(url, params)
            page += 1
            items = response.json().get("items") or []
            log.debug("search/repositories page %d → %d items", page, len(items))
            yield items
            url = _parse_next_link(response.headers.get("Link", ""))
            params = None

    async def search_code(self, query: str, per_page: int = CODE_SEARCH_PAGE_SIZE) -> list[dict[str, Any]]:
        """First page of code search results."""
        data = await self._get_json("/search/code", {"q": query, "per_page": per_page})
        return data.get("items") or []

    async def get_file_content(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> str:
        """Decoded text of a file from the contents API."""
        params = {"ref": ref} if ref else None
        data = await self._get_json(f"/repos/{owner}/{repo}/contents/{path}", params)
        if not isinstance(data, dict) or "content" not in data:
            raise ProviderError(f"{owner}/{repo}/{path} is not a file")
        content = data.get("content") or ""
        if data.get("encoding", "base64") == "base64":
            return base64.b64decode(content).decode("utf-8")
        return content

    async def list_tags(self, owner: str, repo: str, per_page: int = TAGS_PAGE_SIZE) -> list[str]:
        """Tag names from the first page of the tags listing."""
        data = await self._get_json(f"/repos/{owner}/{repo}/tags", {"per_page": per_page})
        return [tag["name"] for tag in data if tag.get("name")]

    # -- internal --

    async def _get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        response = await self._request(url, params)
        return response.json()

    async def _request(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        classify: bool = True,
    ) -> httpx.Response:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ProviderError(f"GitHub request to {url} failed: {e}") from e
        if response.is_success:
            return response
        if not classify:
            raise ProviderError(_error_text(response))
        raise await self.classify_error(_error_text(response), response)

    async def classify_error(self, text: str, response: Optional[httpx.Response] = None) -> ProviderError:
        """Rewrite a failed call into a rate-limit, authentication or permission error.

        For rate limits the current quota is fetched again so the message can
        name the real figures; if that lookup fails too, a generic message is used.
        """
        lowered = text.lower()
        exhausted = response is not None and response.headers.get("X-RateLimit-Remaining") == "0"

        if "rate limit" in lowered or exhausted or (response is not None and response.status_code == 429):
            try:
                quota = await self.rate_limit()
            except ProviderError:
                quota = None
            if quota is not None:
                return RateLimitError(
                    f"GitHub API rate limit exceeded: {quota.limit - quota.remaining}/{quota.limit} "
                    f"requests used, {quota.describe_reset()}. Use a personal access token for "
                    f"higher limits or wait before retrying. Original error: {text}",
                    remaining=quota.remaining,
                    limit=quota.limit,
                    reset=quota.reset,
                )
            return RateLimitError(
                "GitHub API rate limit exceeded. Use a personal access token for higher limits "
                f"or wait before retrying. Original error: {text}"
            )

        if " 401 " in f" {text} " or "bad credentials" in lowered:
            return AuthenticationError(
                "GitHub authentication failed: invalid or expired token. Check GITHUB_TOKEN "
                f"(or GH_TOKEN / GITHUB_ACCESS_TOKEN). Original error: {text}"
            )

        if " 403 " in f" {text} ":
            return ProviderPermissionError(
                "GitHub API access denied: insufficient permissions or repository not accessible. "
                f"Make sure the token has the required scopes. Original error: {text}"
            )

        return ProviderError(text)

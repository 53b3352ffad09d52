"""Tests for dependent_discovery github (remote discovery and version resolution).

The GitHub API is faked with httpx.MockTransport; toolchain calls are patched.
"""

import base64
import time
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from dependent_discovery.config import GitHubConfig
from dependent_discovery.errors import (
    AuthenticationError,
    DiscoveryInputError,
    NoSemverTagsError,
    NoTagsError,
    ProxyResponseError,
    RateLimitError,
    ToolchainError,
    VersionResolutionError,
)
from dependent_discovery.github import GitHubDiscovery, build_search_query
from dependent_discovery.github_client import GitHubClient
from dependent_discovery.models import (
    DiscoverySource,
    GitHubDiscoveryRequest,
    GitHubVersionRequest,
    RemoteVersionStrategy,
    VersionSource,
)

API = "https://api.github.test"
TARGET = "github.com/acme/errors"


def _go_mod(module: str, version: str = "") -> str:
    text = f"module {module}\n"
    if version:
        text += f"\nrequire (\n\t{TARGET} {version}\n)\n"
    return text


def _repo(name: str, branch: str = "main") -> dict:
    return {
        "name": name,
        "full_name": f"acme/{name}",
        "owner": {"login": "acme"},
        "default_branch": branch,
        "language": "Go",
        "private": False,
    }


class FakeGitHub:
    """Minimal GitHub API: repos, go.mod files, tags and a quota."""

    def __init__(self, remaining=5000, limit=5000):
        self.remaining = remaining
        self.limit = limit
        self.repos: list[dict] = []
        self.files: dict[str, dict[str, str]] = {}   # full_name → path → text
        self.tags: dict[str, list[str]] = {}
        self.page_size = 100
        self.broken_files: set[tuple[str, str]] = set()
        self.garbled_search: set[str] = set()   # full_name whose code search returns HTML
        self.user_status = 200
        self.calls: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)

        if path == "/rate_limit":
            core = {"limit": self.limit, "remaining": self.remaining, "reset": int(time.time()) + 600}
            return httpx.Response(200, json={"resources": {"core": core}})

        if path == "/user":
            if self.user_status != 200:
                return httpx.Response(self.user_status, json={"message": "Bad credentials"})
            return httpx.Response(200, json={"login": "bot"})

        if path == "/search/repositories":
            page = int(request.url.params.get("page", "1"))
            start = (page - 1) * self.page_size
            items = self.repos[start:start + self.page_size]
            headers = {}
            if start + self.page_size < len(self.repos):
                next_url = httpx.URL(
                    f"{API}/search/repositories",
                    params={"q": request.url.params.get("q", ""), "page": page + 1},
                )
                headers["Link"] = f'<{next_url}>; rel="next"'
            return httpx.Response(200, json={"items": items}, headers=headers)

        if path == "/search/code":
            q = request.url.params["q"]
            full_name = q.split("repo:", 1)[1]
            if full_name in self.garbled_search:
                return httpx.Response(200, text="<html>upstream error</html>")
            items = [{"path": p} for p in self.files.get(full_name, {})]
            return httpx.Response(200, json={"items": items})

        if path.startswith("/repos/") and "/contents/" in path:
            _, _, owner, repo, _, file_path = path.split("/", 5)
            full_name = f"{owner}/{repo}"
            if (full_name, file_path) in self.broken_files:
                return httpx.Response(404, json={"message": "Not Found"})
            text = self.files[full_name][file_path]
            return httpx.Response(200, json={
                "content": base64.b64encode(text.encode()).decode(),
                "encoding": "base64",
            })

        if path.startswith("/repos/") and path.endswith("/tags"):
            full_name = "/".join(path.split("/")[2:4])
            return httpx.Response(200, json=[{"name": t} for t in self.tags.get(full_name, [])])

        return httpx.Response(404, json={"message": "Not Found"})

    def add(self, name: str, files: dict[str, str], branch: str = "main") -> None:
        self.repos.append(_repo(name, branch))
        self.files[f"acme/{name}"] = files


@pytest.fixture
def fake():
    return FakeGitHub()


@pytest.fixture
async def discovery(fake):
    config = GitHubConfig(token="t", api_url=API)
    client = GitHubClient(config, transport=httpx.MockTransport(fake.handler))
    yield GitHubDiscovery(client)
    await client.close()


def _request(**kwargs):
    return GitHubDiscoveryRequest(organization="acme", target_module=TARGET, **kwargs)


class TestBuildSearchQuery:
    def test_default_filters(self):
        assert build_search_query(_request()) == "language:go filename:go.mod org:acme"

    def test_raw_query_verbatim(self):
        assert build_search_query(_request(search_query="topic:payments")) == "topic:payments org:acme"


class TestRateLimitPreflight:
    async def test_critical_quota_fails_before_search(self, fake, discovery):
        fake.remaining, fake.limit = 50, 5000
        fake.add("billing", {"go.mod": _go_mod("github.com/acme/billing", "v0.8.0")})

        with pytest.raises(RateLimitError) as exc_info:
            await discovery.discover_dependents(_request())

        message = str(exc_info.value)
        assert "50" in message and "5000" in message
        assert exc_info.value.remaining == 50
        assert "/search/repositories" not in fake.calls

    async def test_moderate_quota_only_warns(self, fake, discovery, caplog):
        fake.remaining = 1000
        with caplog.at_level("WARNING", logger="dependent_discovery.github"):
            await discovery.discover_dependents(_request())
        assert "rate limit" in caplog.text
        assert "/search/repositories" in fake.calls


class TestDiscoverDependents:
    async def test_finds_dependents(self, fake, discovery):
        fake.add("billing", {"go.mod": _go_mod("github.com/acme/billing", "v0.8.0")})
        fake.add("docs", {"go.mod": _go_mod("github.com/acme/docs")})
        deps = await discovery.discover_dependents(_request())

        assert [d.repository for d in deps] == ["acme/billing"]
        d = deps[0]
        assert d.module_path == "github.com/acme/billing"
        assert d.current_version == "v0.8.0"
        assert d.clone_url == "https://github.com/acme/billing"
        assert d.branch == "main"
        assert d.discovery_source == DiscoverySource.GITHUB

    async def test_nested_module_path(self, fake, discovery):
        fake.add("platform", {"tools/go.mod": _go_mod("github.com/acme/platform/tools", "v0.8.0")}, branch="trunk")
        deps = await discovery.discover_dependents(_request())
        assert deps[0].local_module_path == "tools"
        assert deps[0].branch == "trunk"

    async def test_target_repo_excluded(self, fake, discovery):
        fake.add("errors", {"go.mod": _go_mod(TARGET) + f"require {TARGET} v0.1.0\n"})
        assert await discovery.discover_dependents(_request()) == []

    async def test_target_version_filter(self, fake, discovery):
        fake.add("billing", {"go.mod": _go_mod("github.com/acme/billing", "v0.8.0")})
        fake.add("orders", {"go.mod": _go_mod("github.com/acme/orders", "v0.9.0")})
        fake.add("ledger", {"go.mod": _go_mod("github.com/acme/ledger", "v0.10.0")})
        deps = await discovery.discover_dependents(_request(target_version="v0.9.0"))
        assert [d.repository for d in deps] == ["acme/billing"]

    async def test_name_filters(self, fake, discovery):
        for name in ("svc-billing", "svc-legacy", "tool-gen"):
            fake.add(name, {"go.mod": _go_mod(f"github.com/acme/{name}", "v0.8.0")})
        deps = await discovery.discover_dependents(_request(include_patterns=("svc-*",), exclude_patterns=("*-legacy",)))
        assert [d.repository for d in deps] == ["acme/svc-billing"]

    async def test_paginates_and_truncates_to_cap(self, fake, discovery):
        fake.page_size = 2
        for i in range(5):
            fake.add(f"svc{i}", {"go.mod": _go_mod(f"github.com/acme/svc{i}", "v0.8.0")})
        deps = await discovery.discover_dependents(_request(max_results=3))
        assert [d.repository for d in deps] == ["acme/svc0", "acme/svc1", "acme/svc2"]
        assert fake.calls.count("/search/repositories") == 2

    async def test_follows_every_page_without_cap(self, fake, discovery):
        fake.page_size = 2
        for i in range(5):
            fake.add(f"svc{i}", {"go.mod": _go_mod(f"github.com/acme/svc{i}", "v0.8.0")})
        deps = await discovery.discover_dependents(_request())
        assert len(deps) == 5
        assert fake.calls.count("/search/repositories") == 3

    async def test_unreadable_file_skipped(self, fake, discovery):
        fake.add("billing", {
            "broken/go.mod": "",
            "go.mod": _go_mod("github.com/acme/billing", "v0.8.0"),
        })
        fake.broken_files.add(("acme/billing", "broken/go.mod"))
        deps = await discovery.discover_dependents(_request())
        assert [d.module_path for d in deps] == ["github.com/acme/billing"]

    async def test_malformed_code_search_skipped(self, fake, discovery):
        fake.add("broken", {"go.mod": _go_mod("github.com/acme/broken", "v0.8.0")})
        fake.add("billing", {"go.mod": _go_mod("github.com/acme/billing", "v0.8.0")})
        fake.garbled_search.add("acme/broken")
        deps = await discovery.discover_dependents(_request())
        assert [d.repository for d in deps] == ["acme/billing"]

    async def test_cap_closes_search_pages(self, discovery):
        closed = []

        async def pages(query):
            try:
                yield [_repo("a"), _repo("b")]
                yield [_repo("c")]
            finally:
                closed.append(query)

        with patch.object(discovery._client, "search_repositories", pages):
            repos = await discovery.search_repositories(_request(max_results=1))
        assert [r.full_name for r in repos] == ["acme/a"]
        assert len(closed) == 1

    async def test_first_matching_file_wins(self, fake, discovery):
        fake.add("mono", {
            "a/go.mod": _go_mod("github.com/acme/mono/a", "v0.7.0"),
            "b/go.mod": _go_mod("github.com/acme/mono/b", "v0.6.0"),
        })
        deps = await discovery.discover_dependents(_request())
        assert [d.module_path for d in deps] == ["github.com/acme/mono/a"]
        assert fake.calls.count("/repos/acme/mono/contents/b/go.mod") == 0

    async def test_missing_organization(self, discovery):
        with pytest.raises(DiscoveryInputError):
            await discovery.discover_dependents(GitHubDiscoveryRequest(organization="", target_module=TARGET))


class TestValidateAuthentication:
    async def test_ok(self, discovery):
        await discovery.validate_authentication()

    async def test_bad_token(self, fake, discovery):
        fake.user_status = 401
        with pytest.raises(AuthenticationError, match="invalid or expired token"):
            await discovery.validate_authentication()


def _version_request(strategy, **kwargs):
    return GitHubVersionRequest(repository="acme/errors", target_module=TARGET, strategy=strategy, **kwargs)


class TestResolveVersionTags:
    async def test_latest_tag(self, fake, discovery):
        fake.tags["acme/errors"] = ["v0.9.0", "nightly", "v0.10.0", "0.10.1-rc.1"]
        res = await discovery.resolve_version(_version_request(RemoteVersionStrategy.TAGS))
        assert res.version == "v0.10.1-rc.1"
        assert res.source == VersionSource.NETWORK

    async def test_no_tags(self, discovery):
        with pytest.raises(NoTagsError):
            await discovery.resolve_version(_version_request(RemoteVersionStrategy.TAGS))

    async def test_no_semver_tags(self, fake, discovery):
        fake.tags["acme/errors"] = ["nightly", "stable"]
        with pytest.raises(NoSemverTagsError):
            await discovery.resolve_version(_version_request(RemoteVersionStrategy.TAGS))

    async def test_critical_quota(self, fake, discovery):
        fake.remaining = 10
        with pytest.raises(RateLimitError):
            await discovery.resolve_version(_version_request(RemoteVersionStrategy.TAGS))
        assert not any(c.endswith("/tags") for c in fake.calls)

    async def test_bad_repository_format(self, discovery):
        with pytest.raises(DiscoveryInputError, match="owner/repo"):
            await discovery.resolve_version(GitHubVersionRequest(repository="errors", target_module=TARGET))


class TestResolveVersionProxy:
    @patch("dependent_discovery.github.toolchain.go_list_versions", new_callable=AsyncMock)
    async def test_proxy(self, mock_list, discovery):
        mock_list.return_value = f"{TARGET} v0.8.0 v0.9.0\nv0.10.0\n"
        res = await discovery.resolve_version(_version_request(RemoteVersionStrategy.PROXY))
        assert res.version == "v0.10.0"
        assert mock_list.call_args.kwargs["env"]["GOPROXY"]

    @patch("dependent_discovery.github.toolchain.go_list_versions", new_callable=AsyncMock)
    async def test_unparseable_response(self, mock_list, discovery):
        mock_list.return_value = ""
        with pytest.raises(ProxyResponseError):
            await discovery.resolve_version(_version_request(RemoteVersionStrategy.PROXY))

    @patch("dependent_discovery.github.toolchain.go_list_versions", new_callable=AsyncMock)
    async def test_failure_without_fallback(self, mock_list, discovery):
        mock_list.side_effect = ToolchainError(["go"], 1, "proxy unreachable")
        with pytest.raises(VersionResolutionError, match="Go module proxy"):
            await discovery.resolve_version(_version_request(RemoteVersionStrategy.PROXY))

    @patch("dependent_discovery.github.toolchain.go_list_versions", new_callable=AsyncMock)
    async def test_fallback_to_tags_records_warning(self, mock_list, fake, discovery):
        mock_list.side_effect = ToolchainError(["go"], 1, "proxy unreachable")
        fake.tags["acme/errors"] = ["v1.2.0"]
        res = await discovery.resolve_version(_version_request(RemoteVersionStrategy.PROXY, fallback_to_tags=True))
        assert res.version == "v1.2.0"
        assert len(res.warnings) == 1
        assert "falling back to Git tags" in res.warnings[0]


class TestResolveVersionGitRemote:
    @patch("dependent_discovery.github.toolchain.git_ls_remote_tags", new_callable=AsyncMock)
    async def test_git_remote(self, mock_ls, discovery):
        mock_ls.return_value = ["v1.0.0", "v1.1.0", "junk"]
        res = await discovery.resolve_version(_version_request(RemoteVersionStrategy.GIT_REMOTE))
        assert res.version == "v1.1.0"
        assert mock_ls.call_args.args[0] == "https://github.com/acme/errors.git"
        assert res.warnings == ["Version resolved using git ls-remote (requires network access)"]

    @patch("dependent_discovery.github.toolchain.git_ls_remote_tags", new_callable=AsyncMock)
    async def test_no_tags(self, mock_ls, discovery):
        mock_ls.return_value = []
        with pytest.raises(NoTagsError):
            await discovery.resolve_version(_version_request(RemoteVersionStrategy.GIT_REMOTE))

    @patch("dependent_discovery.github.toolchain.git_ls_remote_tags", new_callable=AsyncMock)
    async def test_no_semver(self, mock_ls, discovery):
        mock_ls.return_value = ["latest"]
        with pytest.raises(NoSemverTagsError):
            await discovery.resolve_version(_version_request(RemoteVersionStrategy.GIT_REMOTE))

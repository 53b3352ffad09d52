"""Tests for dependent_discovery discover (engine selection)."""

from unittest.mock import MagicMock

import pytest

from dependent_discovery.config import GitHubConfig
from dependent_discovery.discover import select_discovery
from dependent_discovery.github import GitHubDiscovery
from dependent_discovery.models import DiscoverySource
from dependent_discovery.workspace import WorkspaceDiscovery


class TestSelectDiscovery:
    def test_workspace(self):
        assert isinstance(select_discovery(DiscoverySource.WORKSPACE), WorkspaceDiscovery)

    def test_workspace_from_string(self):
        assert isinstance(select_discovery("workspace", concurrency=4), WorkspaceDiscovery)

    def test_github(self):
        engine = select_discovery("github", client=MagicMock(), config=GitHubConfig(token="t", server_url="https://ghe.corp"))
        assert isinstance(engine, GitHubDiscovery)

    def test_github_requires_client(self):
        with pytest.raises(ValueError, match="client"):
            select_discovery(DiscoverySource.GITHUB)

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            select_discovery("gitlab")

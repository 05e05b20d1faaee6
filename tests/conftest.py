"""Test fixtures for gourcers.

Provides fixtures for:
- Repository records used by the selector tests
- Workspaces rooted in a temporary directory
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from gourcers.models import Repository
from gourcers.pipeline.workspace import Workspace


@pytest.fixture
def make_repo() -> Callable[..., Repository]:
    """Factory for Repository records; ``full_name`` defaults to owner/name."""

    def _make(
        name: str = "repo",
        owner: str = "campbellcole",
        full_name: str | None = None,
        is_fork: bool = False,
    ) -> Repository:
        return Repository(
            name=name,
            owner=owner,
            full_name=full_name or f"{owner}/{name}",
            is_fork=is_fork,
        )

    return _make


@pytest.fixture
def scenario_repos(make_repo: Callable[..., Repository]) -> list[Repository]:
    """Three repositories: own source, own fork, someone else's source."""
    return [
        make_repo("a", "campbellcole"),
        make_repo("b", "campbellcole", is_fork=True),
        make_repo("c", "other"),
    ]


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    """Workspace rooted in a temporary directory."""
    ws = Workspace(tmp_path / "data")
    ws.ensure_directories()
    return ws


@pytest.fixture
def api_repo_payload() -> Callable[..., dict]:
    """Factory for GitHub REST repository objects."""

    def _payload(name: str, owner: str = "campbellcole", fork: bool = False) -> dict:
        return {
            "name": name,
            "full_name": f"{owner}/{name}",
            "owner": {"login": owner},
            "fork": fork,
            "private": False,
            "ssh_url": f"git@github.com:{owner}/{name}.git",
            "clone_url": f"https://github.com/{owner}/{name}.git",
        }

    return _payload

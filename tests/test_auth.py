"""Tests for GitHub authentication module."""

import os
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from gourcers.github.auth import AuthenticationError, GitHubAuth, _get_gh_cli_token

TEST_TOKEN = "ghp_" + "a" * 36


def _gh_result(returncode: int = 1, stdout: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    return result


class TestGitHubAuthValidTokens:
    """Tests for GitHubAuth initialization with valid tokens."""

    @pytest.mark.parametrize("prefix", ["ghp_", "gho_", "ghu_", "ghs_", "github_pat_"])
    def test_valid_prefixed_token(self, prefix: str) -> None:
        """Test initialization with each accepted prefix."""
        token = prefix + "b" * 36
        assert GitHubAuth(token=token).token == token

    def test_valid_classic_token(self) -> None:
        """Test initialization with valid classic token (40 hex chars)."""
        token = "abc123def456abc789def012abc345def6789abc"
        assert GitHubAuth(token=token).token == token


class TestGitHubAuthInvalidTokens:
    """Tests for GitHubAuth initialization with invalid tokens."""

    def test_missing_token_everywhere(self) -> None:
        """Test that AuthenticationError is raised when no source has a token."""
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("gourcers.github.auth.subprocess.run", return_value=_gh_result()),
            pytest.raises(AuthenticationError, match="GitHub token not found"),
        ):
            GitHubAuth(token=None)

    def test_missing_token_names_env_var(self) -> None:
        """Test the error names the configured environment variable."""
        with (
            patch.dict(os.environ, {}, clear=True),
            patch("gourcers.github.auth.subprocess.run", side_effect=FileNotFoundError),
            pytest.raises(AuthenticationError, match="MY_TOKEN"),
        ):
            GitHubAuth(token_env="MY_TOKEN")

    @pytest.mark.parametrize("token", ["invalid_token", "A" * 40, "a" * 39, "gha_" + "a" * 36])
    def test_invalid_format(self, token: str) -> None:
        """Test unrecognized token formats are rejected."""
        with pytest.raises(AuthenticationError, match="Invalid token format"):
            GitHubAuth(token=token)

    def test_too_short(self) -> None:
        """Test prefixed tokens under 20 characters are rejected."""
        with pytest.raises(AuthenticationError, match="too short"):
            GitHubAuth(token="ghp_short")


class TestGitHubAuthSources:
    """Tests for the token source order."""

    def test_explicit_beats_env(self) -> None:
        """Test an explicit token wins over the environment."""
        with patch.dict(os.environ, {"GITHUB_TOKEN": "ghp_" + "z" * 36}):
            assert GitHubAuth(token=TEST_TOKEN).token == TEST_TOKEN

    def test_custom_env_var(self) -> None:
        """Test the token is read from the configured variable."""
        with patch.dict(os.environ, {"MY_TOKEN": TEST_TOKEN}, clear=True):
            assert GitHubAuth(token_env="MY_TOKEN").token == TEST_TOKEN

    def test_gh_cli_fallback(self) -> None:
        """Test the gh CLI is used when the environment has no token."""
        with (
            patch.dict(os.environ, {}, clear=True),
            patch(
                "gourcers.github.auth.subprocess.run",
                return_value=_gh_result(0, TEST_TOKEN + "\n"),
            ),
        ):
            assert GitHubAuth().token == TEST_TOKEN

    def test_authorization_header(self) -> None:
        """Test the bearer header."""
        auth = GitHubAuth(token=TEST_TOKEN)
        assert auth.get_authorization_header() == {"Authorization": f"Bearer {TEST_TOKEN}"}


class TestGhCliToken:
    """Tests for _get_gh_cli_token()."""

    def test_not_installed(self) -> None:
        """Test a missing gh binary gives None."""
        with patch("gourcers.github.auth.subprocess.run", side_effect=FileNotFoundError):
            assert _get_gh_cli_token() is None

    def test_timeout(self) -> None:
        """Test a hung gh gives None."""
        with patch(
            "gourcers.github.auth.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5),
        ):
            assert _get_gh_cli_token() is None

    def test_not_logged_in(self) -> None:
        """Test a non-zero exit gives None."""
        with patch("gourcers.github.auth.subprocess.run", return_value=_gh_result(1)):
            assert _get_gh_cli_token() is None

    def test_empty_output(self) -> None:
        """Test blank output gives None."""
        with patch("gourcers.github.auth.subprocess.run", return_value=_gh_result(0, "\n")):
            assert _get_gh_cli_token() is None

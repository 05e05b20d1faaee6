"""GitHub authentication.

Loads a personal access token from an explicit value, an environment
variable, or the GitHub CLI. The token needs the ``repo`` scope to list
private repositories.
"""

import logging
import os
import re
import subprocess

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_ENV = "GITHUB_TOKEN"


class AuthenticationError(Exception):
    """Raised when no usable token is found or the token is malformed."""


def _get_gh_cli_token() -> str | None:
    """Try to get token from GitHub CLI.

    Returns:
        Token from `gh auth token` or None if not available.
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except FileNotFoundError:
        logger.debug("gh CLI not found, skipping it as a token source")
        return None
    except subprocess.TimeoutExpired:
        logger.debug("gh CLI command timed out after 5 seconds")
        return None

    if result.returncode != 0:
        logger.debug("gh CLI returned exit code %d; run 'gh auth login'", result.returncode)
        return None

    return result.stdout.strip() or None


class GitHubAuth:
    """GitHub token holder.

    Sources, in order:
    1. Explicit token parameter
    2. The ``token_env`` environment variable (``GITHUB_TOKEN`` by default)
    3. GitHub CLI (`gh auth token`)

    Accepted formats are the prefixed tokens (``ghp_``, ``gho_``, ``ghu_``,
    ``ghs_``, ``github_pat_``) and 40 character hex classic tokens.
    """

    VALID_PREFIXES = ("ghp_", "gho_", "ghu_", "ghs_", "github_pat_")

    CLASSIC_TOKEN_PATTERN = re.compile(r"^[a-f0-9]{40}$")

    def __init__(self, token: str | None = None, token_env: str = DEFAULT_TOKEN_ENV) -> None:
        """Load and validate the token.

        Args:
            token: GitHub token. If None, loads from ``token_env`` or the gh CLI.
            token_env: Environment variable holding the token.

        Raises:
            AuthenticationError: If token is missing or invalid.
        """
        if token:
            loaded_token, token_source = token, "explicit parameter"
        elif os.environ.get(token_env):
            loaded_token, token_source = os.environ[token_env], f"{token_env} environment variable"
        else:
            loaded_token, token_source = _get_gh_cli_token(), "gh CLI"

        if not loaded_token:
            raise AuthenticationError(
                f"GitHub token not found. Set {token_env}, pass --token, "
                "or authenticate with `gh auth login`."
            )

        logger.info("Using GitHub token from %s", token_source)

        self._token: str = loaded_token
        self._validate_token()

    def _validate_token(self) -> None:
        """Validate token format.

        Raises:
            AuthenticationError: If token format is invalid.
        """
        token = self._token
        has_valid_prefix = token.startswith(self.VALID_PREFIXES)
        is_classic = bool(self.CLASSIC_TOKEN_PATTERN.match(token))

        if not has_valid_prefix and not is_classic:
            raise AuthenticationError(
                f"Invalid token format. Expected prefix {self.VALID_PREFIXES} "
                "or 40-character hex string (classic token)"
            )

        if has_valid_prefix and len(token) < 20:
            raise AuthenticationError("Token appears too short to be valid")

    @property
    def token(self) -> str:
        """The validated GitHub token."""
        return self._token

    def get_authorization_header(self) -> dict[str, str]:
        """Get the Authorization header for API requests."""
        return {"Authorization": f"Bearer {self._token}"}

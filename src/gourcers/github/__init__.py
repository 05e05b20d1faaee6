"""GitHub API clients and utilities."""

from gourcers.github.auth import AuthenticationError, GitHubAuth
from gourcers.github.http import (
    APIUsage,
    GitHubClient,
    GitHubHTTPError,
    GitHubResponse,
    RateLimitExceeded,
    RateLimitInfo,
)
from gourcers.github.rest import RestClient

__all__ = [
    # Auth
    "AuthenticationError",
    "GitHubAuth",
    # HTTP Client
    "APIUsage",
    "GitHubClient",
    "GitHubHTTPError",
    "GitHubResponse",
    "RateLimitExceeded",
    "RateLimitInfo",
    # REST API Client
    "RestClient",
]

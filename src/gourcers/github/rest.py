"""GitHub REST API client for the repository list.

Lists every repository the authenticated account can access, following
``Link`` pagination headers.
"""

import logging
import re
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from gourcers.github.http import GitHubClient, GitHubHTTPError, GitHubResponse
from gourcers.models import Repository

logger = logging.getLogger(__name__)

PER_PAGE = 100
LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="([^"]+)"')


class RestClient:
    """GitHub REST API client with pagination.

    Wraps GitHubClient to provide:
    - Automatic pagination following Link headers
    - Optional dumping of every raw page for debugging
    """

    def __init__(self, http_client: GitHubClient, dump_dir: Path | None = None) -> None:
        """Initialize REST API client.

        Args:
            http_client: GitHubClient instance for HTTP requests.
            dump_dir: If set, each raw page is written to ``api_page{N}.json`` here.
        """
        self._http = http_client
        self._dump_dir = dump_dir

    @staticmethod
    def _parse_link_header(link_header: str | None) -> dict[str, str]:
        """Parse Link header to extract pagination URLs.

        Args:
            link_header: Link header value from response.

        Returns:
            Dict mapping rel type to URL (e.g., {"next": "url", "last": "url"}).
        """
        if not link_header:
            return {}

        links = {}
        # Link header format: <url>; rel="next", <url>; rel="last"
        for part in link_header.split(","):
            match = LINK_PATTERN.match(part.strip())
            if match:
                url, rel = match.groups()
                links[rel] = url

        return links

    def _dump_page(self, page_num: int, response: GitHubResponse) -> None:
        if self._dump_dir is None:
            return
        self._dump_dir.mkdir(parents=True, exist_ok=True)
        dump_path = self._dump_dir / f"api_page{page_num}.json"
        dump_path.write_text(response.text)
        logger.debug("Dumped page %d to %s", page_num, dump_path)

    async def _paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Paginate through API results following Link headers.

        Stops at the last page or at the first empty page.

        Raises:
            GitHubHTTPError: If a page request is not successful.
        """
        next_url: str | None = path
        current_params = params
        page_num = 1

        while next_url:
            response = await self._http.get(next_url, params=current_params)
            self._dump_page(page_num, response)

            if not response.is_success:
                msg = f"GET {next_url} failed with status {response.status_code}"
                raise GitHubHTTPError(msg)

            data = response.data
            if not isinstance(data, list):
                msg = f"Expected a list from {next_url}, got {type(data).__name__}"
                raise GitHubHTTPError(msg)

            logger.debug("Fetched %d items on page %d", len(data), page_num)
            if not data:
                return

            yield data

            # The next link carries the full query string
            next_url = self._parse_link_header(response.headers.get("link")).get("next")
            current_params = None
            page_num += 1

    async def list_user_repos(self) -> AsyncIterator[list[dict[str, Any]]]:
        """List every repository the authenticated user can access.

        Yields:
            Raw repository objects, one page at a time.
        """
        logger.info("Fetching repositories for the authenticated user")
        async for items in self._paginate("/user/repos", {"per_page": PER_PAGE}):
            yield items

    async def fetch_repositories(self) -> list[Repository]:
        """Collect every accessible repository as a Repository record."""
        repos: list[Repository] = []
        async for items in self.list_user_repos():
            repos.extend(Repository.from_api(item) for item in items)
        logger.info("Fetched %d repositories", len(repos))
        return repos

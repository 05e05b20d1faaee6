"""Data directory layout."""

import logging
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from gourcers.models import Repository

logger = logging.getLogger(__name__)


class Workspace:
    """Manages paths for checkouts, per-repo logs and the merged log.

    Layout under the data directory:
    - Checkouts: repos/<owner>__<name>/
    - Per-repo gource logs: gource/<owner>__<name>.txt
    - Merged log: sorted.txt
    - Raw API pages (when dumping): api/
    """

    def __init__(self, root: Path, temporary: bool = False) -> None:
        """Initialize workspace.

        Args:
            root: Data directory.
            temporary: Whether the directory is removed after the run.
        """
        self.root = Path(root)
        self.temporary = temporary

    @classmethod
    @contextmanager
    def open(cls, data_dir: Path | None) -> Iterator["Workspace"]:
        """Use ``data_dir``, or a temporary directory removed on exit."""
        if data_dir is not None:
            workspace = cls(data_dir)
            workspace.ensure_directories()
            yield workspace
            return

        with tempfile.TemporaryDirectory(prefix="gourcers-") as tmp:
            logger.info("Using temporary data directory %s", tmp)
            workspace = cls(Path(tmp), temporary=True)
            workspace.ensure_directories()
            yield workspace

    @property
    def repos_dir(self) -> Path:
        """Root path for checkouts."""
        return self.root / "repos"

    @property
    def gource_dir(self) -> Path:
        """Root path for per-repo gource logs."""
        return self.root / "gource"

    @property
    def api_dump_dir(self) -> Path:
        """Directory for dumped API pages."""
        return self.root / "api"

    @property
    def sorted_log(self) -> Path:
        """Path to the merged, sorted gource log."""
        return self.root / "sorted.txt"

    def repo_dir(self, repo: Repository) -> Path:
        """Checkout path for a repository."""
        return self.repos_dir / repo.path_friendly_name

    def gource_log(self, repo: Repository) -> Path:
        """Per-repo gource log path."""
        return self.gource_dir / f"{repo.path_friendly_name}.txt"

    def ensure_directories(self) -> None:
        """Create all workspace directories."""
        for directory in (self.repos_dir, self.gource_dir):
            directory.mkdir(parents=True, exist_ok=True)

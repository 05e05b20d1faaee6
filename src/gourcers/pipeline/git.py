"""Clone or update repository checkouts."""

import asyncio
import logging

from gourcers.models import Repository
from gourcers.pipeline.workspace import Workspace

logger = logging.getLogger(__name__)


class GitCommandError(Exception):
    """Raised when git exits with a non-zero status."""

    def __init__(self, repo: Repository, command: str, stderr: str) -> None:
        self.repo = repo
        self.command = command
        self.stderr = stderr
        super().__init__(f"git {command} failed for {repo.full_name}: {stderr}")


async def fetch_repo(workspace: Workspace, repo: Repository, protocol: str = "ssh") -> None:
    """Clone the repository, or pull if the checkout already exists.

    Args:
        workspace: Data directory layout.
        repo: Repository to fetch.
        protocol: ``ssh`` or ``https`` clone URL.

    Raises:
        GitCommandError: If git fails.
    """
    repo_dir = workspace.repo_dir(repo)

    if repo_dir.exists():
        command = "pull"
        argv = ["git", "pull"]
        cwd = repo_dir
    else:
        command = "clone"
        argv = ["git", "clone", repo.url_for(protocol), str(repo_dir)]
        cwd = None

    logger.debug("Running git %s for %s", command, repo.full_name)

    proc = await asyncio.create_subprocess_exec(
        *argv,
        cwd=cwd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    _, stderr = await proc.communicate()

    if proc.returncode != 0:
        raise GitCommandError(repo, command, stderr.decode(errors="replace").strip())

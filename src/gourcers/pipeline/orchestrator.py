"""Pipeline orchestration.

Runs the full sequence for one account:
1. Fetch the repository list
2. Filter it with the ruleset
3. Clone or pull each included repository
4. Export a gource log per repository
5. Merge the logs into one sorted log
6. Render with gource (and ffmpeg)

The filter stage completes before any per-repository work starts; clone
and log export then run concurrently, bounded by ``max_concurrency``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from gourcers.config import Config
from gourcers.github.auth import GitHubAuth
from gourcers.github.http import APIUsage, GitHubClient
from gourcers.github.rest import RestClient
from gourcers.models import Repository
from gourcers.pipeline import gource
from gourcers.pipeline.git import fetch_repo
from gourcers.pipeline.progress import PipelineProgress
from gourcers.pipeline.workspace import Workspace
from gourcers.selectors import FilterOutcome, Ruleset, filter_repositories, log_decisions

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Summary of a pipeline run."""

    outcome: FilterOutcome
    events: int = 0
    output: Path | None = None
    api_usage: APIUsage = field(default_factory=APIUsage)


async def fetch_and_filter(
    config: Config,
    ruleset: Ruleset,
    auth: GitHubAuth,
    dump_dir: Path | None = None,
    usage: APIUsage | None = None,
) -> FilterOutcome:
    """Fetch the account's repositories and apply the ruleset.

    Args:
        config: Application configuration.
        ruleset: Validated ruleset.
        auth: GitHub authentication.
        dump_dir: Where to dump raw API pages, if requested.
        usage: Record of the API requests made, updated in place.

    Returns:
        FilterOutcome for every fetched repository.
    """
    async with GitHubClient(
        auth=auth,
        timeout=config.github.timeout,
        max_retries=config.github.max_retries,
        base_url=config.github.api_url,
        usage=usage,
    ) as client:
        rest = RestClient(client, dump_dir=dump_dir)
        repos = await rest.fetch_repositories()
    logger.info("GitHub API: %s", client.usage.summary())

    outcome = filter_repositories(ruleset, repos)
    log_decisions(outcome)
    return outcome


async def for_each_repo(
    repos: Sequence[Repository],
    action: Callable[[Repository], Awaitable[object]],
    max_concurrency: int,
    on_start: Callable[[Repository], None] | None = None,
    on_done: Callable[[Repository], None] | None = None,
) -> None:
    """Run ``action`` for every repository, at most ``max_concurrency`` at a time.

    The first failure cancels the remaining work and is re-raised.
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def run(repo: Repository) -> None:
        async with semaphore:
            if on_start is not None:
                on_start(repo)
            await action(repo)
            if on_done is not None:
                on_done(repo)

    tasks = [asyncio.create_task(run(repo)) for repo in repos]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def run_pipeline(
    config: Config,
    ruleset: Ruleset,
    workspace: Workspace,
    auth: GitHubAuth,
    progress: PipelineProgress | None = None,
) -> PipelineResult:
    """Run every pipeline step.

    Args:
        config: Application configuration.
        ruleset: Validated ruleset.
        workspace: Data directory layout.
        auth: GitHub authentication.
        progress: Progress display. Defaults to a quiet one.

    Returns:
        PipelineResult with the filter outcome, event count and video path.
    """
    progress = progress or PipelineProgress(quiet=True)
    concurrency = config.workspace.max_concurrency

    progress.step("fetch")
    dump_dir = workspace.api_dump_dir if config.github.dump_requests else None
    with progress.spinner("Fetching repository pages"):
        usage = APIUsage()
        outcome = await fetch_and_filter(config, ruleset, auth, dump_dir=dump_dir, usage=usage)

    repos = list(outcome.included)
    result = PipelineResult(outcome=outcome, api_usage=usage)
    if not repos:
        logger.warning("No repositories selected, nothing to render")
        return result

    if config.workspace.skip_clone:
        progress.step("clone", "(skipped)")
    else:
        progress.step("clone")
        protocol = config.workspace.clone_protocol
        with progress.repos("Cloning", len(repos)) as task:
            await for_each_repo(
                repos,
                lambda repo: fetch_repo(workspace, repo, protocol),
                concurrency,
                on_start=lambda repo: task.set_repo(repo.full_name),
                on_done=lambda _: task.advance(),
            )

    progress.step("logs")
    with progress.repos("Logging", len(repos)) as task:
        await for_each_repo(
            repos,
            lambda repo: gource.generate_gource_log(workspace, repo),
            concurrency,
            on_start=lambda repo: task.set_repo(repo.full_name),
            on_done=lambda _: task.advance(),
        )

    progress.step("combine")
    result.events = gource.combine_and_sort_logs(workspace, repos)

    progress.step("render")
    with progress.spinner("Running gource"):
        result.output = await gource.render(workspace, config.render)

    return result

"""CLI entry point for gourcers.

Commands:
- render: Fetch, filter, clone, log and render every selected repository
- list: Show which repositories the rules select and why
- check: Validate rules offline and explain them against a repository
- doctor: Check that git, gource and ffmpeg are available
"""

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any, NoReturn

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gourcers import __version__
from gourcers.config import Config, load_config
from gourcers.github.auth import AuthenticationError, GitHubAuth
from gourcers.github.http import APIUsage
from gourcers.logging import setup_logging
from gourcers.models import Repository
from gourcers.pipeline.deps import (
    MissingDependencyError,
    check_dependencies,
    ensure_dependencies,
    required_tools,
)
from gourcers.pipeline.orchestrator import fetch_and_filter, run_pipeline
from gourcers.pipeline.progress import PipelineProgress
from gourcers.pipeline.workspace import Workspace
from gourcers.selectors import Decision, RuleParseError, Ruleset

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="gourcers")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Gource many GitHub repositories at once.

    Lists every repository your token can access, keeps the ones your
    include rules select, and renders their combined history with gource.

    \b
    Rules (one per --include or per line of --include-file):
        *:*                  include everything
        owner:rust-lang      include repos owned by rust-lang
        !is_fork:true        exclude forks
        full_name:me/dotfiles
    Later rules override earlier ones; with no matching rule a repository
    is excluded.
    """
    load_dotenv()
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose=verbose)


def rule_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that takes include rules."""
    func = click.option(
        "--include-file",
        "-f",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Read include rules from this file (one per line, '#' comments)",
    )(func)
    func = click.option(
        "--include",
        "-i",
        "includes",
        multiple=True,
        help="Include rule, e.g. 'owner:me' or '!is_fork:true'. Repeatable.",
    )(func)
    return click.option(
        "--config",
        "-c",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="Path to config.yaml file",
    )(func)


def github_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options for commands that talk to the GitHub API."""
    return click.option(
        "--token",
        "-t",
        default=None,
        help="GitHub personal access token with the 'repo' scope (default: $GITHUB_TOKEN)",
    )(func)


def _fail(ctx: click.Context, message: str, error: BaseException | None = None) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {message}")
    if error is not None and ctx.obj.get("verbose"):
        import traceback

        console.print("\n[dim]Traceback:[/dim]")
        console.print("".join(traceback.format_exception(error)))
    raise click.Abort() from error


def _build_config(
    ctx: click.Context,
    config_path: Path | None,
    includes: tuple[str, ...],
    include_file: Path | None,
) -> Config:
    try:
        cfg = load_config(config_path) if config_path else Config()
    except Exception as e:
        _fail(ctx, f"Invalid config {config_path}: {e}", e)

    if include_file is not None:
        cfg.selection.rules_file = include_file
    cfg.selection.rules = [*cfg.selection.rules, *includes]
    return cfg


def _load_ruleset(ctx: click.Context, cfg: Config) -> Ruleset:
    """Parse every rule before any other work starts."""
    try:
        return Ruleset.from_sources(cfg.selection.rules_file, cfg.selection.rules)
    except RuleParseError as e:
        _fail(ctx, f"Invalid include rule: {e}")
    except OSError as e:
        _fail(ctx, f"Cannot read include file: {e}", e)


def _load_auth(ctx: click.Context, cfg: Config, token: str | None) -> GitHubAuth:
    try:
        return GitHubAuth(token=token, token_env=cfg.github.token_env)
    except AuthenticationError as e:
        _fail(ctx, str(e))


def _confirm_temporary_dir() -> None:
    console.print("[bold red]WARNING:[/bold red] [dim]No --data-dir specified![/dim]")
    console.print(
        "[bold red]WARNING:[/bold red] [dim]A temporary data directory will be created and "
        "removed after finishing. Every repository is cloned again on the next run.[/dim]\n"
    )
    if not click.confirm("Are you sure you want to use a temporary data directory?"):
        console.print("[red]Refusing to use a temporary data directory.[/red]")
        raise click.Abort()


@main.command()
@rule_options
@github_options
@click.option(
    "--data-dir",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for checkouts and logs. Reused across runs.",
)
@click.option(
    "--temp",
    "-y",
    is_flag=True,
    default=False,
    help="Use a temporary data directory without asking",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path of the rendered video (default: ./gource.mp4)",
)
@click.option(
    "--skip-clone",
    is_flag=True,
    default=False,
    help="Assume checkouts are already present in the data directory",
)
@click.option(
    "--preview",
    is_flag=True,
    default=False,
    help="Open the gource window instead of encoding a video",
)
@click.option("--gource-args", default=None, help="Extra arguments passed to gource")
@click.option("--ffmpeg-args", default=None, help="Extra arguments passed to ffmpeg")
@click.option(
    "--concurrency",
    type=click.IntRange(1, 32),
    default=None,
    help="Repositories cloned or logged at the same time",
)
@click.option(
    "--dump-requests",
    is_flag=True,
    default=False,
    help="Write raw API pages to <data-dir>/api for debugging",
)
@click.pass_context
def render(
    ctx: click.Context,
    config: Path | None,
    includes: tuple[str, ...],
    include_file: Path | None,
    token: str | None,
    data_dir: Path | None,
    temp: bool,
    output: Path | None,
    skip_clone: bool,
    preview: bool,
    gource_args: str | None,
    ffmpeg_args: str | None,
    concurrency: int | None,
    dump_requests: bool,
) -> None:
    """Render the combined history of every selected repository.

    \b
    The steps are:
    1. Fetch every repository the token can access
    2. Keep the ones selected by the include rules
    3. Clone them (or pull if already cloned)
    4. Export a gource log per repository
    5. Merge the logs and render them with gource piped into ffmpeg

    Video command: gource GOURCE_ARGS -o - sorted.txt |
    ffmpeg -y -r 60 -f image2pipe -c:v ppm -i - FFMPEG_ARGS OUTPUT
    """
    cfg = _build_config(ctx, config, includes, include_file)
    ruleset = _load_ruleset(ctx, cfg)

    if data_dir is not None:
        cfg.workspace.data_dir = data_dir
    if skip_clone:
        cfg.workspace.skip_clone = True
    if concurrency is not None:
        cfg.workspace.max_concurrency = concurrency
    if output is not None:
        cfg.render.output = output
    if preview:
        cfg.render.video = False
    if gource_args is not None:
        cfg.render.gource_args = gource_args
    if ffmpeg_args is not None:
        cfg.render.ffmpeg_args = ffmpeg_args
    if dump_requests:
        cfg.github.dump_requests = True

    auth = _load_auth(ctx, cfg, token)

    try:
        ensure_dependencies(
            required_tools(video=cfg.render.video, clone=not cfg.workspace.skip_clone)
        )
    except MissingDependencyError as e:
        _fail(ctx, str(e))

    if cfg.workspace.data_dir is None and not temp:
        _confirm_temporary_dir()

    progress = PipelineProgress(console)
    try:
        with Workspace.open(cfg.workspace.data_dir) as workspace:
            result = asyncio.run(run_pipeline(cfg, ruleset, workspace, auth, progress))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise click.Abort() from None
    except Exception as e:
        _fail(ctx, str(e), e)

    console.print()
    console.print("[bold green]Done![/bold green]")
    console.print(f"  Repositories: {len(result.outcome.included)}/{len(result.outcome.decisions)}")
    console.print(f"  Events: {result.events}")
    console.print(f"  GitHub API: {result.api_usage.summary()}")
    if result.output is not None:
        console.print(f"  Video: {result.output}")
    console.print(f"  Elapsed: {progress.get_summary()['elapsed_seconds']}s")


def _decision_table(decisions: list[Decision]) -> Table:
    table = Table(title="Repositories")
    table.add_column("Repository", style="bold")
    table.add_column("Fork")
    table.add_column("Decision")
    table.add_column("Reason", style="dim")

    for decision in decisions:
        verdict = "[green]include[/green]" if decision.included else "[red]exclude[/red]"
        table.add_row(
            decision.repo.full_name,
            "yes" if decision.repo.is_fork else "",
            verdict,
            escape(decision.explain()),
        )
    return table


@main.command(name="list")
@rule_options
@github_options
@click.option(
    "--all",
    "show_all",
    is_flag=True,
    default=False,
    help="Also show excluded repositories",
)
@click.pass_context
def list_repos(
    ctx: click.Context,
    config: Path | None,
    includes: tuple[str, ...],
    include_file: Path | None,
    token: str | None,
    show_all: bool,
) -> None:
    """Show which repositories the include rules select and why."""
    cfg = _build_config(ctx, config, includes, include_file)
    ruleset = _load_ruleset(ctx, cfg)
    auth = _load_auth(ctx, cfg, token)

    usage = APIUsage()
    try:
        outcome = asyncio.run(fetch_and_filter(cfg, ruleset, auth, usage=usage))
    except Exception as e:
        _fail(ctx, str(e), e)

    decisions = [d for d in outcome.decisions if show_all or d.included]
    console.print(_decision_table(decisions))
    console.print(
        f"\n[bold]{len(outcome.included)}[/bold] of {len(outcome.decisions)} repositories selected"
    )
    console.print(f"[dim]GitHub API: {usage.summary()}[/dim]")


@main.command()
@rule_options
@click.option(
    "--repo",
    "repo_name",
    default=None,
    metavar="OWNER/NAME",
    help="Explain the rules against this repository",
)
@click.option("--fork", is_flag=True, default=False, help="Treat --repo as a fork")
@click.pass_context
def check(
    ctx: click.Context,
    config: Path | None,
    includes: tuple[str, ...],
    include_file: Path | None,
    repo_name: str | None,
    fork: bool,
) -> None:
    """Validate include rules without touching the network.

    Prints the parsed rules in evaluation order. With --repo, prints every
    rule's effect on that repository and the final decision.
    """
    cfg = _build_config(ctx, config, includes, include_file)
    ruleset = _load_ruleset(ctx, cfg)

    if not ruleset:
        console.print("[yellow]No rules given: every repository would be excluded.[/yellow]")
    else:
        console.print(f"[bold]{len(ruleset)} rules[/bold] (later rules override earlier ones)")
        for position, selector in enumerate(ruleset, start=1):
            console.print(
                f"  {position:>3}. {escape(str(selector))}  "
                f"[dim]{selector.effect} if {escape(selector.describe())}[/dim]"
            )

    if repo_name is None:
        return

    owner, separator, name = repo_name.partition("/")
    if not separator or not owner or not name:
        _fail(ctx, f"--repo must look like OWNER/NAME, got {repo_name!r}")

    repo = Repository(name=name, owner=owner, full_name=repo_name, is_fork=fork)
    decision = ruleset.evaluate(repo)

    table = Table(title=f"Rules applied to {repo.full_name}")
    table.add_column("#", justify="right")
    table.add_column("Rule")
    table.add_column("Matched")
    table.add_column("Running decision")
    for entry in decision.trail:
        table.add_row(
            str(entry.position),
            escape(str(entry.selector)),
            "yes" if entry.matched else "",
            "include" if entry.included else "exclude",
        )
    console.print()
    console.print(table)
    console.print(escape(decision.explain()))


@main.command()
def doctor() -> None:
    """Check that git, gource and ffmpeg are installed."""
    problems = {problem.tool: problem for problem in check_dependencies()}

    for tool in required_tools():
        if tool in problems:
            console.print(f"  [red]✗[/red] {problems[tool]}")
        else:
            console.print(f"  [green]✓[/green] {tool}")

    if problems:
        console.print("\n[yellow]Install the missing tools and try again.[/yellow]")
        raise click.Abort()


if __name__ == "__main__":
    main()

"""Gource log generation, merging and rendering.

Each repository's history is exported with ``gource --output-custom-log``,
its paths are prefixed with the repository name so all repositories share
one tree, and the per-repo logs are merged into one chronological log that
gource renders (optionally piped into ffmpeg).
"""

import asyncio
import contextlib
import logging
import os
import re
import tempfile
import unicodedata
from collections.abc import Iterable
from pathlib import Path
from typing import IO

from gourcers.config import RenderConfig
from gourcers.models import Repository
from gourcers.pipeline.workspace import Workspace

logger = logging.getLogger(__name__)

# timestamp|user|type| followed by the path
PATH_FIELD_PATTERN = re.compile(r"^(.*\|.\|)(.*)$", re.MULTILINE)
QUOTE_PATTERN = re.compile(r"['\"`]")


class GourceError(Exception):
    """Raised when gource or ffmpeg fails."""

    def __init__(self, message: str, stderr: str = "") -> None:
        self.stderr = stderr
        super().__init__(f"{message}: {stderr}" if stderr else message)


def strip_diacritics(text: str) -> str:
    """Remove combining marks, e.g. ``José`` becomes ``Jose``."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def rewrite_log(log: str, repo_name: str) -> str:
    """Prefix every path with ``/<repo_name>`` and drop characters gource chokes on."""
    log = PATH_FIELD_PATTERN.sub(lambda m: f"{m.group(1)}/{repo_name}{m.group(2)}", log)
    log = strip_diacritics(log)
    return QUOTE_PATTERN.sub("", log)


async def generate_gource_log(workspace: Workspace, repo: Repository) -> Path:
    """Export a repository's history as a rewritten gource custom log.

    Args:
        workspace: Data directory layout.
        repo: Repository whose checkout is already present.

    Returns:
        Path of the written log.

    Raises:
        GourceError: If gource fails.
    """
    repo_dir = workspace.repo_dir(repo)
    logger.debug("Generating gource log for %s", repo.full_name)

    proc = await asyncio.create_subprocess_exec(
        "gource",
        "--output-custom-log",
        "-",
        str(repo_dir),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()

    if proc.returncode != 0:
        raise GourceError(
            f"Failed to generate gource log for {repo.full_name}",
            stderr.decode(errors="replace").strip(),
        )

    log_path = workspace.gource_log(repo)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    log_path.write_text(rewrite_log(stdout.decode(errors="replace"), repo.name), encoding="utf-8")
    return log_path


def _timestamp(line: str) -> int | None:
    head, _, _ = line.partition("|")
    try:
        return int(head)
    except ValueError:
        return None


def combine_and_sort_logs(workspace: Workspace, repos: Iterable[Repository]) -> int:
    """Merge the per-repo logs into one log sorted by timestamp.

    The sort is stable, so events sharing a timestamp keep the repository
    order. Lines without a numeric timestamp are dropped.

    Returns:
        Number of lines written.
    """
    events: list[tuple[int, str]] = []
    dropped = 0

    for repo in repos:
        log_path = workspace.gource_log(repo)
        for line in log_path.read_bytes().decode("utf-8").split("\n"):
            line = line.removesuffix("\r")
            if not line:
                continue
            timestamp = _timestamp(line)
            if timestamp is None:
                dropped += 1
                continue
            events.append((timestamp, line))

    if dropped:
        logger.warning("Dropped %d log lines without a timestamp", dropped)

    events.sort(key=lambda event: event[0])

    with workspace.sorted_log.open("w", encoding="utf-8") as f:
        for _, line in events:
            f.write(line + "\n")

    logger.info("Wrote %d events to %s", len(events), workspace.sorted_log)
    return len(events)


def build_gource_command(workspace: Workspace, settings: RenderConfig) -> list[str]:
    """Command line for gource; streams PPM frames to stdout in video mode."""
    argv = ["gource", *settings.gource_argv]
    if settings.video:
        argv += ["-o", "-"]
    argv.append(str(workspace.sorted_log))
    return argv


def build_ffmpeg_command(settings: RenderConfig) -> list[str]:
    """Command line for ffmpeg reading PPM frames from stdin."""
    return [
        "ffmpeg",
        "-y",
        "-r",
        str(settings.framerate),
        "-f",
        "image2pipe",
        "-c:v",
        "ppm",
        "-i",
        "-",
        *settings.ffmpeg_argv,
        str(settings.output),
    ]


def _read(stream: IO[bytes]) -> str:
    stream.seek(0)
    return stream.read().decode(errors="replace").strip()


async def _kill_running(procs: list[asyncio.subprocess.Process]) -> None:
    for proc in procs:
        if proc.returncode is None:
            logger.debug("Killing pid %s", proc.pid)
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()


async def render_video(workspace: Workspace, settings: RenderConfig) -> Path:
    """Pipe gource's frames into ffmpeg to encode the video.

    Both processes are killed if rendering is cancelled or fails to start,
    so an interrupted run does not leave them reading a removed workspace.

    Raises:
        GourceError: If either process fails.
    """
    settings.output.parent.mkdir(parents=True, exist_ok=True)
    gource_cmd = build_gource_command(workspace, settings)
    ffmpeg_cmd = build_ffmpeg_command(settings)
    logger.debug("Running %s | %s", " ".join(gource_cmd), " ".join(ffmpeg_cmd))

    procs: list[asyncio.subprocess.Process] = []
    with (
        tempfile.TemporaryFile() as gource_err,
        tempfile.TemporaryFile() as ffmpeg_err,
    ):
        try:
            read_fd, write_fd = os.pipe()
            try:
                procs.append(
                    await asyncio.create_subprocess_exec(
                        *gource_cmd, stdout=write_fd, stderr=gource_err
                    )
                )
                procs.append(
                    await asyncio.create_subprocess_exec(
                        *ffmpeg_cmd,
                        stdin=read_fd,
                        stdout=asyncio.subprocess.DEVNULL,
                        stderr=ffmpeg_err,
                    )
                )
            finally:
                # the children hold their own copies of the pipe ends
                os.close(write_fd)
                os.close(read_fd)

            gource_code, ffmpeg_code = await asyncio.gather(*(proc.wait() for proc in procs))
        finally:
            await _kill_running(procs)

        if gource_code != 0:
            raise GourceError("gource failed to render", _read(gource_err))
        if ffmpeg_code != 0:
            raise GourceError("ffmpeg failed to encode video", _read(ffmpeg_err))

    logger.info("Wrote video to %s", settings.output)
    return settings.output


async def preview(workspace: Workspace, settings: RenderConfig) -> None:
    """Open the interactive gource window on the merged log.

    Raises:
        GourceError: If gource exits with an error.
    """
    proc = await asyncio.create_subprocess_exec(*build_gource_command(workspace, settings))
    try:
        returncode = await proc.wait()
    finally:
        await _kill_running([proc])
    if returncode != 0:
        raise GourceError(f"gource exited with code {returncode}")


async def render(workspace: Workspace, settings: RenderConfig) -> Path | None:
    """Render a video, or open a preview when video output is disabled."""
    if settings.video:
        return await render_video(workspace, settings)
    await preview(workspace, settings)
    return None

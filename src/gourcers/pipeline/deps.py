"""External tool availability checks."""

import logging
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# (binary, argument that makes it print something and exit 0)
TOOLS: dict[str, str] = {
    "git": "--version",
    "gource": "-h",
    "ffmpeg": "-version",
}


@dataclass(frozen=True)
class DependencyProblem:
    """A tool that is missing or failed its probe."""

    tool: str
    detail: str

    def __str__(self) -> str:
        return f"{self.tool}: {self.detail}"


class MissingDependencyError(Exception):
    """Raised when required external tools are unavailable."""

    def __init__(self, problems: list[DependencyProblem]) -> None:
        self.problems = problems
        super().__init__("Missing dependencies: " + "; ".join(str(p) for p in problems))


def _probe(tool: str, arg: str) -> DependencyProblem | None:
    try:
        result = subprocess.run(
            [tool, arg],
            capture_output=True,
            timeout=10,
            check=False,
        )
    except FileNotFoundError:
        return DependencyProblem(tool, "not found on PATH")
    except subprocess.TimeoutExpired:
        return DependencyProblem(tool, f"'{tool} {arg}' timed out")

    if result.returncode != 0:
        return DependencyProblem(tool, f"'{tool} {arg}' exited with code {result.returncode}")

    logger.debug("Found %s", tool)
    return None


def required_tools(video: bool = True, clone: bool = True) -> list[str]:
    """Tools needed for a run."""
    tools = ["gource"]
    if clone:
        tools.insert(0, "git")
    if video:
        tools.append("ffmpeg")
    return tools


def check_dependencies(tools: list[str] | None = None) -> list[DependencyProblem]:
    """Probe each tool and return the problems found (empty when all present)."""
    problems = []
    for tool in tools or list(TOOLS):
        problem = _probe(tool, TOOLS[tool])
        if problem is not None:
            problems.append(problem)
    return problems


def ensure_dependencies(tools: list[str] | None = None) -> None:
    """Raise MissingDependencyError if any tool is unavailable."""
    problems = check_dependencies(tools)
    if problems:
        raise MissingDependencyError(problems)

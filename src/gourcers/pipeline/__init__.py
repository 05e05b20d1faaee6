"""Clone, log, merge and render pipeline around the external tools."""

from gourcers.pipeline.deps import DependencyProblem, MissingDependencyError, check_dependencies
from gourcers.pipeline.git import GitCommandError, fetch_repo
from gourcers.pipeline.gource import GourceError, combine_and_sort_logs, generate_gource_log, render
from gourcers.pipeline.orchestrator import PipelineResult, fetch_and_filter, run_pipeline
from gourcers.pipeline.progress import PipelineProgress
from gourcers.pipeline.workspace import Workspace

__all__ = [
    "DependencyProblem",
    "GitCommandError",
    "GourceError",
    "MissingDependencyError",
    "PipelineProgress",
    "PipelineResult",
    "Workspace",
    "check_dependencies",
    "combine_and_sort_logs",
    "fetch_and_filter",
    "fetch_repo",
    "generate_gource_log",
    "render",
    "run_pipeline",
]

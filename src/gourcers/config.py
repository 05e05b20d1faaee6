"""Configuration loading and validation."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

DEFAULT_GOURCE_ARGS = "--hide root -a 1 -s 1 -c 4 --key --multi-sampling -1920x1080"
DEFAULT_FFMPEG_ARGS = "-c:v libx264 -preset ultrafast -crf 1 -bf 0"


class GitHubConfig(BaseModel):
    """GitHub API configuration."""

    token_env: str = "GITHUB_TOKEN"
    api_url: str = "https://api.github.com"
    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0, le=10)
    dump_requests: bool = Field(
        default=False, description="Write every raw repository page to the data directory"
    )


class SelectionConfig(BaseModel):
    """Include/exclude rules."""

    rules: list[str] = Field(default_factory=list)
    rules_file: Path | None = None


class WorkspaceConfig(BaseModel):
    """Data directory and per-repository work."""

    data_dir: Path | None = Field(
        default=None, description="Leave unset to use a temporary directory"
    )
    skip_clone: bool = False
    clone_protocol: str = Field(default="ssh", pattern=r"^(ssh|https)$")
    max_concurrency: int = Field(default=4, ge=1, le=32)


class RenderConfig(BaseModel):
    """Gource and ffmpeg invocation."""

    output: Path = Field(default=Path("gource.mp4"))
    video: bool = True
    framerate: int = Field(default=60, ge=1, le=240)
    gource_args: str = DEFAULT_GOURCE_ARGS
    ffmpeg_args: str = DEFAULT_FFMPEG_ARGS

    @property
    def gource_argv(self) -> list[str]:
        """Extra gource arguments split on whitespace."""
        return self.gource_args.split()

    @property
    def ffmpeg_argv(self) -> list[str]:
        """Extra ffmpeg arguments split on whitespace."""
        return self.ffmpeg_args.split()


class Config(BaseModel):
    """Root configuration model."""

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)


def load_config(path: Path) -> Config:
    """Load and validate configuration from YAML file.

    Relative ``rules_file`` paths are resolved against the config file's
    directory.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValidationError: If the config is invalid.
    """
    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open() as f:
        raw_config: dict[str, Any] = yaml.safe_load(f) or {}

    config = Config.model_validate(raw_config)

    rules_file = config.selection.rules_file
    if rules_file is not None and not rules_file.is_absolute():
        config.selection.rules_file = path.parent / rules_file

    return config

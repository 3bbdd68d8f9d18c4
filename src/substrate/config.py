"""Runtime configuration for sandbox sessions."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

_MEMORY_PATTERN = re.compile(r"^\d+[bkmg]?$", re.IGNORECASE)


@dataclass(slots=True)
class ResourceLimits:
    """CPU and memory caps applied to each sandbox."""

    cpus: str = "2"
    memory: str = "4g"


@dataclass(slots=True)
class SandboxSettings:
    """Container image and resource settings."""

    image: str = "substrate:latest"
    limits: ResourceLimits = field(default_factory=ResourceLimits)


@dataclass(slots=True)
class ToolSettings:
    """External executables used by the lifecycle backend."""

    git_bin: str = "git"
    docker_bin: str = "docker"
    tmux_bin: str = "tmux"
    timeout_seconds: int = 60


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    worktree_base: Path = Path("/tmp/substrate")  # noqa: S108
    claude_config_dir: Path = field(default_factory=lambda: Path.home() / ".claude")
    id_bytes: int = 2
    sandbox: SandboxSettings = field(default_factory=SandboxSettings)
    tools: ToolSettings = field(default_factory=ToolSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults matching a local workstation."""

        return cls(
            worktree_base=Path(os.getenv("SUBSTRATE_WORKTREE_BASE", "/tmp/substrate")),  # noqa: S108
            claude_config_dir=Path(
                os.getenv("SUBSTRATE_CLAUDE_CONFIG_DIR", str(Path.home() / ".claude")),
            ).expanduser(),
            id_bytes=int(os.getenv("SUBSTRATE_ID_BYTES", "2")),
            sandbox=SandboxSettings(
                image=os.getenv("SUBSTRATE_IMAGE", "substrate:latest"),
                limits=ResourceLimits(
                    cpus=os.getenv("SUBSTRATE_CPUS", "2"),
                    memory=os.getenv("SUBSTRATE_MEMORY", "4g"),
                ),
            ),
            tools=ToolSettings(
                git_bin=os.getenv("SUBSTRATE_GIT_BIN", "git"),
                docker_bin=os.getenv("SUBSTRATE_DOCKER_BIN", "docker"),
                tmux_bin=os.getenv("SUBSTRATE_TMUX_BIN", "tmux"),
                timeout_seconds=int(os.getenv("SUBSTRATE_TOOL_TIMEOUT_SECONDS", "60")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if limits or identity settings are malformed."""

        if not 1 <= self.id_bytes <= 16:
            raise ValueError("SUBSTRATE_ID_BYTES must be between 1 and 16.")
        if not self.sandbox.image.strip():
            raise ValueError("SUBSTRATE_IMAGE must not be empty.")
        if self.tools.timeout_seconds <= 0:
            raise ValueError("SUBSTRATE_TOOL_TIMEOUT_SECONDS must be > 0.")
        validate_limits(self.sandbox.limits)


def validate_limits(limits: ResourceLimits) -> None:
    """Reject CPU and memory values the container runtime would refuse."""

    try:
        cpus = float(limits.cpus)
    except ValueError as error:
        raise ValueError(f"Invalid CPU limit: {limits.cpus!r}") from error
    if cpus <= 0:
        raise ValueError(f"CPU limit must be > 0: {limits.cpus!r}")
    if not _MEMORY_PATTERN.match(limits.memory.strip()):
        raise ValueError(
            f"Invalid memory limit: {limits.memory!r}. Expected <digits>[b|k|m|g], e.g. 4g.",
        )

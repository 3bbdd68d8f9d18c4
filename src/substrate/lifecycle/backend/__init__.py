"""External tool adapters for session lifecycle."""

from substrate.lifecycle.backend.base import (
    CommandRunner,
    Multiplexer,
    SandboxRuntime,
    ToolOutcome,
    ToolRequest,
    ToolResult,
    VersionControl,
)
from substrate.lifecycle.backend.docker import DockerCli
from substrate.lifecycle.backend.git import GitCli
from substrate.lifecycle.backend.runner import SubprocessRunner
from substrate.lifecycle.backend.tmux import TmuxCli

__all__ = [
    "CommandRunner",
    "DockerCli",
    "GitCli",
    "Multiplexer",
    "SandboxRuntime",
    "SubprocessRunner",
    "TmuxCli",
    "ToolOutcome",
    "ToolRequest",
    "ToolResult",
    "VersionControl",
]

"""Typed interfaces for the external tools a session depends on."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol


class ToolOutcome(str, Enum):
    """Normalized outcome of one external tool call."""

    OK = "ok"
    NOT_FOUND = "not_found"
    ALREADY_ABSENT = "already_absent"
    FAILED = "failed"


@dataclass(slots=True)
class ToolRequest:
    """One external command invocation."""

    argv: list[str]
    cwd: Path | None = None
    timeout_seconds: int | None = None
    interactive: bool = False
    absent_patterns: tuple[str, ...] = ()
    absent_outcome: ToolOutcome = ToolOutcome.ALREADY_ABSENT


@dataclass(slots=True)
class ToolResult:
    """Classified result of an external command."""

    outcome: ToolOutcome
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    matched_pattern: str | None = field(default=None)

    @property
    def ok(self) -> bool:
        return self.outcome is ToolOutcome.OK

    @property
    def detail(self) -> str:
        """Best short explanation of a non-ok result."""

        text = self.stderr.strip() or self.stdout.strip()
        if not text:
            return f"exit code {self.exit_code}"
        return text.splitlines()[-1]

    def lines(self) -> list[str]:
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]


class CommandRunner(Protocol):
    """Executes tool requests and classifies their results."""

    def run(self, request: ToolRequest) -> ToolResult:
        """Run one command and return its classified result."""


class VersionControl(Protocol):
    """Branch and worktree registry of the source repository."""

    def add_worktree(self, repo: Path, path: Path, branch: str) -> ToolResult: ...

    def remove_worktree(self, repo: Path, path: Path) -> ToolResult: ...

    def prune_worktrees(self, repo: Path) -> ToolResult: ...

    def delete_branch(self, repo: Path, branch: str) -> ToolResult: ...

    def branch_exists(self, repo: Path, branch: str) -> bool: ...

    def resolve_commit(self, repo: Path, rev: str = "HEAD") -> str | None: ...

    def superproject(self, path: Path) -> Path | None: ...

    def common_dir(self, path: Path) -> Path | None: ...


class SandboxRuntime(Protocol):
    """Container runtime that hosts the agent process."""

    def is_running(self, name: str) -> bool: ...

    def list_names(self) -> list[str]: ...

    def stop(self, name: str) -> ToolResult: ...

    def remove(self, name: str) -> ToolResult: ...

    def image_exists(self, image: str) -> ToolResult: ...


class Multiplexer(Protocol):
    """Named, detachable terminal contexts."""

    def new_session(self, name: str, command: str) -> ToolResult: ...

    def has_session(self, name: str) -> bool: ...

    def attach(self, name: str) -> ToolResult: ...

    def list_sessions(self) -> list[str]: ...

    def kill_session(self, name: str) -> ToolResult: ...

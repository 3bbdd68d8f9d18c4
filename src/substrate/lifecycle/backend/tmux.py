"""tmux session adapter."""

from __future__ import annotations

from substrate.lifecycle.backend.base import CommandRunner, ToolOutcome, ToolRequest, ToolResult
from substrate.lifecycle.backend.outcomes import (
    TMUX_NO_SERVER_PATTERNS,
    TMUX_SESSION_ABSENT_PATTERNS,
)
from substrate.lifecycle.errors import ToolInvocationError


class TmuxCli:
    """Multiplexer operations backed by the ``tmux`` executable.

    Targets use the ``=name`` form so tmux matches session names exactly
    instead of by prefix.
    """

    def __init__(self, runner: CommandRunner, *, executable: str = "tmux") -> None:
        self.runner = runner
        self.executable = executable

    def new_session(self, name: str, command: str) -> ToolResult:
        return self._tmux("new-session", "-d", "-s", name, command)

    def has_session(self, name: str) -> bool:
        return self._tmux("has-session", "-t", f"={name}").ok

    def attach(self, name: str) -> ToolResult:
        return self.runner.run(
            ToolRequest(
                argv=[self.executable, "attach-session", "-t", f"={name}"],
                interactive=True,
            ),
        )

    def list_sessions(self) -> list[str]:
        result = self.runner.run(
            ToolRequest(
                argv=[self.executable, "list-sessions", "-F", "#{session_name}"],
                absent_patterns=TMUX_NO_SERVER_PATTERNS,
                absent_outcome=ToolOutcome.NOT_FOUND,
            ),
        )
        if result.outcome is ToolOutcome.NOT_FOUND:
            return []
        if not result.ok:
            raise ToolInvocationError(
                f"Could not list tmux sessions: {result.detail}",
                stderr=result.stderr,
            )
        return result.lines()

    def kill_session(self, name: str) -> ToolResult:
        return self._tmux(
            "kill-session",
            "-t",
            f"={name}",
            absent_patterns=TMUX_SESSION_ABSENT_PATTERNS,
        )

    def _tmux(self, *args: str, absent_patterns: tuple[str, ...] = ()) -> ToolResult:
        return self.runner.run(
            ToolRequest(
                argv=[self.executable, *args],
                absent_patterns=absent_patterns,
                absent_outcome=ToolOutcome.ALREADY_ABSENT,
            ),
        )

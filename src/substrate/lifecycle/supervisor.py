"""Reattachable tmux sessions wrapping sandbox processes."""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from substrate.lifecycle.backend.base import Multiplexer, SandboxRuntime, ToolOutcome
from substrate.lifecycle.errors import SandboxLaunchError, SessionNotFoundError
from substrate.lifecycle.models import SESSION_PREFIX, Session, StopReport

logger = logging.getLogger(__name__)


def session_handle(full_name: str) -> str:
    return f"{SESSION_PREFIX}{full_name}"


class SessionSupervisor:
    """Start, attach, list and stop sessions by name; queries are always live."""

    def __init__(self, *, multiplexer: Multiplexer, sandbox: SandboxRuntime) -> None:
        self.multiplexer = multiplexer
        self.sandbox = sandbox

    def start(self, session: Session, script_path: Path) -> None:
        """Spawn the run script in a detached session and return immediately."""

        result = self.multiplexer.new_session(session.handle, shlex.quote(str(script_path)))
        if not result.ok:
            raise SandboxLaunchError(
                f"Could not start session {session.handle}: {result.detail}",
            )
        logger.info("Started session %s", session.handle)

    def attach(self, full_name: str) -> None:
        """Hand the terminal to the session; blocks until detach or exit."""

        handle = session_handle(full_name)
        if not self.multiplexer.has_session(handle):
            raise SessionNotFoundError(
                f"No session found: {handle}\nRun 'substrate list' to see active agents.",
            )
        self.multiplexer.attach(handle)

    def list_active(self) -> list[str]:
        """Names of live sessions, without the namespace prefix."""

        return [
            name.removeprefix(SESSION_PREFIX)
            for name in self.multiplexer.list_sessions()
            if name.startswith(SESSION_PREFIX)
        ]

    def is_sandbox_running(self, full_name: str) -> bool:
        return self.sandbox.is_running(session_handle(full_name))

    def close_session(self, full_name: str) -> bool:
        """Kill the session left open after the agent exited; absence is a no-op."""

        handle = session_handle(full_name)
        result = self.multiplexer.kill_session(handle)
        if result.outcome is ToolOutcome.FAILED:
            logger.warning("Could not close session %s: %s", handle, result.detail)
        return result.ok

    def stop(self, full_name: str) -> StopReport:
        """Stop the container and close the session; absent parts are no-ops."""

        handle = session_handle(full_name)
        stopped = self.sandbox.stop(handle)
        removed = self.sandbox.remove(handle)
        closed = self.multiplexer.kill_session(handle)
        for action, result in (("stop", stopped), ("remove", removed), ("kill", closed)):
            if not result.ok:
                logger.debug("%s %s: %s (%s)", action, handle, result.outcome.value, result.detail)
        return StopReport(
            full_name=full_name,
            sandbox_stopped=stopped.ok,
            sandbox_removed=removed.ok,
            context_closed=closed.ok,
        )

"""Subprocess-based runner for external tool commands."""

from __future__ import annotations

import logging
import shlex
import subprocess

from substrate.lifecycle.backend.base import ToolOutcome, ToolRequest, ToolResult
from substrate.lifecycle.backend.outcomes import (
    COMMAND_NOT_FOUND_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    classify_tool_result,
)

logger = logging.getLogger(__name__)


class SubprocessRunner:
    """Run tool requests synchronously and classify the outcome."""

    def __init__(self, *, default_timeout_seconds: int | None = None) -> None:
        self.default_timeout_seconds = default_timeout_seconds

    def run(self, request: ToolRequest) -> ToolResult:
        logger.debug("exec: %s", shlex.join(request.argv))
        if request.interactive:
            return self._run_interactive(request)

        timeout = request.timeout_seconds or self.default_timeout_seconds
        try:
            completed = subprocess.run(  # noqa: S603
                request.argv,
                cwd=request.cwd,
                check=False,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError:
            return _command_not_found(request)
        except subprocess.TimeoutExpired:
            return ToolResult(
                outcome=ToolOutcome.FAILED,
                exit_code=TIMEOUT_EXIT_CODE,
                stderr=f"Command timed out after {timeout}s: {request.argv[0]}",
            )
        except OSError as error:
            return ToolResult(
                outcome=ToolOutcome.FAILED,
                exit_code=1,
                stderr=f"Command failed to start: {error}",
            )

        result = classify_tool_result(
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            absent_patterns=request.absent_patterns,
            absent_outcome=request.absent_outcome,
        )
        if not result.ok:
            logger.debug("exit %s (%s): %s", result.exit_code, result.outcome.value, result.detail)
        return result

    def _run_interactive(self, request: ToolRequest) -> ToolResult:
        # Terminal stays attached to the child; nothing to capture.
        try:
            completed = subprocess.run(request.argv, cwd=request.cwd, check=False)  # noqa: S603
        except FileNotFoundError:
            return _command_not_found(request)
        except OSError as error:
            return ToolResult(
                outcome=ToolOutcome.FAILED,
                exit_code=1,
                stderr=f"Command failed to start: {error}",
            )
        outcome = ToolOutcome.OK if completed.returncode == 0 else ToolOutcome.FAILED
        return ToolResult(outcome=outcome, exit_code=completed.returncode)


def _command_not_found(request: ToolRequest) -> ToolResult:
    return ToolResult(
        outcome=ToolOutcome.FAILED,
        exit_code=COMMAND_NOT_FOUND_EXIT_CODE,
        stderr=f"Command not found: {request.argv[0]}",
    )

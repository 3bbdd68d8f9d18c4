"""Deterministic classification of external tool results."""

from __future__ import annotations

from substrate.lifecycle.backend.base import ToolOutcome, ToolResult

GIT_WORKTREE_ABSENT_PATTERNS: tuple[str, ...] = (
    "is not a working tree",
    "not a working tree",
    "no such file or directory",
)
GIT_BRANCH_ABSENT_PATTERNS: tuple[str, ...] = (
    "not found",
    "no such branch",
)
DOCKER_CONTAINER_ABSENT_PATTERNS: tuple[str, ...] = (
    "no such container",
    "is not running",
)
DOCKER_IMAGE_ABSENT_PATTERNS: tuple[str, ...] = (
    "no such image",
    "no such object",
)
TMUX_SESSION_ABSENT_PATTERNS: tuple[str, ...] = (
    "can't find session",
    "session not found",
    "no server running",
    "error connecting to",
)
TMUX_NO_SERVER_PATTERNS: tuple[str, ...] = (
    "no server running",
    "error connecting to",
    "no sessions",
)

COMMAND_NOT_FOUND_EXIT_CODE = 127
TIMEOUT_EXIT_CODE = 124


def classify_tool_result(
    *,
    exit_code: int,
    stdout: str,
    stderr: str,
    absent_patterns: tuple[str, ...],
    absent_outcome: ToolOutcome,
) -> ToolResult:
    """Map exit code and output text to a normalized outcome."""

    if exit_code == 0:
        return ToolResult(outcome=ToolOutcome.OK, exit_code=0, stdout=stdout, stderr=stderr)

    pattern = _first_match(_normalize_text(stdout=stdout, stderr=stderr), absent_patterns)
    if pattern is not None:
        return ToolResult(
            outcome=absent_outcome,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            matched_pattern=pattern,
        )
    return ToolResult(
        outcome=ToolOutcome.FAILED,
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
    )


def _normalize_text(*, stdout: str, stderr: str) -> str:
    return f"{stderr}\n{stdout}".lower()


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None

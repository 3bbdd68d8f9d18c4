"""Session identity allocation."""

from __future__ import annotations

import logging
import re
import secrets
from collections.abc import Callable
from pathlib import Path

from substrate.lifecycle.errors import IdentityAllocationError, ValidationError
from substrate.lifecycle.models import Session

logger = logging.getLogger(__name__)

MAX_TASK_NAME_LENGTH = 64
DEFAULT_MAX_ATTEMPTS = 32

# Must be safe as a path component, a git ref component and a tmux session name.
_TASK_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


def validate_task_name(task_name: str) -> str:
    """Return the stripped task name or raise ``ValidationError``."""

    name = task_name.strip()
    if not name:
        raise ValidationError("Task name must not be empty.")
    if len(name) > MAX_TASK_NAME_LENGTH:
        raise ValidationError(
            f"Task name is too long ({len(name)} > {MAX_TASK_NAME_LENGTH}): {name!r}",
        )
    if not _TASK_NAME_PATTERN.match(name):
        raise ValidationError(
            f"Invalid task name: {name!r}. Use letters, digits, '-' and '_' only, "
            "starting with a letter or digit.",
        )
    return name


def generate_id(id_bytes: int = 2) -> str:
    """Short random hex token; collisions are possible and handled by the caller."""

    try:
        return secrets.token_hex(id_bytes)
    except (NotImplementedError, OSError) as error:
        raise IdentityAllocationError(f"Entropy source unavailable: {error}") from error


def allocate(  # noqa: PLR0913
    task_name: str,
    *,
    worktree_base: Path,
    source_repo: Path | None = None,
    prompt: str | None = None,
    is_taken: Callable[[Session], bool] | None = None,
    id_bytes: int = 2,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> Session:
    """Draw a fresh session identity for ``task_name``.

    ``is_taken`` is probed for each candidate; a detected collision is
    redrawn up to ``max_attempts`` times.
    """

    name = validate_task_name(task_name)
    for attempt in range(1, max_attempts + 1):
        session = Session(
            task_name=name,
            session_id=generate_id(id_bytes),
            worktree_base=worktree_base,
            source_repo=source_repo,
            prompt=prompt,
        )
        if is_taken is None or not is_taken(session):
            return session
        logger.debug("Session id collision on attempt %d: %s", attempt, session.full_name)

    raise IdentityAllocationError(
        f"Could not allocate a free session id for {name!r} after {max_attempts} attempts.",
    )

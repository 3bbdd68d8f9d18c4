"""Domain models for sandbox sessions and their teardown."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

SESSION_PREFIX = "substrate-"
BRANCH_PREFIX = "substrate/"
PROMPT_FILENAME = ".substrate-prompt"
AUTH_DIRNAME = ".substrate-auth"

SANDBOX_WORKDIR = "/workspace"
SANDBOX_AUTH_MOUNT = "/tmp/substrate-auth"  # noqa: S108


@dataclass(slots=True, frozen=True)
class Session:
    """One agent run, addressed everywhere by ``full_name``."""

    task_name: str
    session_id: str
    worktree_base: Path
    source_repo: Path | None = None
    prompt: str | None = None

    @classmethod
    def from_full_name(cls, full_name: str, worktree_base: Path) -> Session:
        """Rebuild a session from its name alone, as attach/stop/clean do."""

        task_name, sep, session_id = full_name.rpartition("-")
        if not sep or not task_name:
            return cls(task_name=full_name, session_id="", worktree_base=worktree_base)
        return cls(task_name=task_name, session_id=session_id, worktree_base=worktree_base)

    @property
    def full_name(self) -> str:
        if not self.session_id:
            return self.task_name
        return f"{self.task_name}-{self.session_id}"

    @property
    def handle(self) -> str:
        return f"{SESSION_PREFIX}{self.full_name}"

    @property
    def branch_name(self) -> str:
        return f"{BRANCH_PREFIX}{self.full_name}"

    @property
    def workspace_path(self) -> Path:
        return self.worktree_base / self.full_name

    @property
    def prompt_path(self) -> Path:
        return self.workspace_path / PROMPT_FILENAME

    @property
    def auth_dir(self) -> Path:
        return self.workspace_path / AUTH_DIRNAME


class StepStatus(str, Enum):
    """Outcome of one best-effort teardown step."""

    DONE = "done"
    ALREADY_ABSENT = "already_absent"
    SKIPPED = "skipped"
    FAILED = "failed"


class TeardownStepName(str, Enum):
    """Ordered teardown steps."""

    RESOLVE_SOURCE = "resolve_source"
    REMOVE_WORKTREE = "remove_worktree"
    DELETE_DIRECTORY = "delete_directory"
    PRUNE_WORKTREES = "prune_worktrees"
    DELETE_BRANCH = "delete_branch"


@dataclass(slots=True)
class TeardownStep:
    """Recorded outcome of one teardown step."""

    name: TeardownStepName
    status: StepStatus
    message: str

    @property
    def is_warning(self) -> bool:
        return self.status is not StepStatus.DONE


class CleanStatus(str, Enum):
    """Terminal per-target summary of a clean operation."""

    REMOVED = "removed"
    ALREADY_ABSENT = "already_absent"
    FAILED = "failed"


@dataclass(slots=True)
class TeardownReport:
    """Aggregated outcomes of a workspace teardown."""

    full_name: str
    workspace_existed: bool
    source_repo: Path | None = None
    steps: list[TeardownStep] = field(default_factory=list)

    def record(self, name: TeardownStepName, status: StepStatus, message: str) -> TeardownStep:
        step = TeardownStep(name=name, status=status, message=message)
        self.steps.append(step)
        return step

    def step(self, name: TeardownStepName) -> TeardownStep | None:
        for step in self.steps:
            if step.name is name:
                return step
        return None

    @property
    def warnings(self) -> list[TeardownStep]:
        return [step for step in self.steps if step.is_warning]

    @property
    def status(self) -> CleanStatus:
        """Collapse step outcomes into removed / already absent / failed."""

        if not self.workspace_existed:
            return CleanStatus.ALREADY_ABSENT
        if self.source_repo is None:
            return CleanStatus.FAILED
        directory = self.step(TeardownStepName.DELETE_DIRECTORY)
        if directory is not None and directory.status is StepStatus.FAILED:
            return CleanStatus.FAILED
        branch = self.step(TeardownStepName.DELETE_BRANCH)
        if branch is not None and branch.status is StepStatus.FAILED:
            return CleanStatus.FAILED
        return CleanStatus.REMOVED


@dataclass(slots=True)
class StopReport:
    """Which parts of a session were actually stopped."""

    full_name: str
    sandbox_stopped: bool
    sandbox_removed: bool
    context_closed: bool

    @property
    def found_anything(self) -> bool:
        return self.sandbox_stopped or self.sandbox_removed or self.context_closed


@dataclass(slots=True)
class CleanResult:
    """Per-target result of the reconciler."""

    full_name: str
    status: CleanStatus
    stop: StopReport | None = None
    session_closed: bool = False
    teardown: TeardownReport | None = None
    error: str | None = None

"""Branch-backed worktree provisioning and teardown."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from substrate.lifecycle.backend.base import ToolOutcome, VersionControl
from substrate.lifecycle.credentials import CredentialBundle
from substrate.lifecycle.errors import NotARepositoryError, WorktreeCreationError
from substrate.lifecycle.models import (
    Session,
    StepStatus,
    TeardownReport,
    TeardownStepName,
)

logger = logging.getLogger(__name__)


def resolve_repository(source_repo: Path) -> Path:
    """Absolute path of a git repository, or ``NotARepositoryError``."""

    repo = source_repo.expanduser()
    if not (repo / ".git").exists():
        raise NotARepositoryError(f"{source_repo} is not a git repository")
    return repo.resolve()


class WorkspaceProvisioner:
    """Creates and destroys one isolated worktree per session."""

    def __init__(
        self,
        *,
        vcs: VersionControl,
        credentials: CredentialBundle | None = None,
    ) -> None:
        self.vcs = vcs
        self.credentials = credentials

    def provision(self, source_repo: Path, session: Session) -> Path:
        """Fork ``session.branch_name`` from HEAD into ``session.workspace_path``."""

        repo = resolve_repository(source_repo)
        workspace = session.workspace_path
        try:
            workspace.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise WorktreeCreationError(
                f"Cannot create worktree base {workspace.parent}: {error}",
            ) from error

        logger.info("Creating worktree %s on branch %s", workspace, session.branch_name)
        result = self.vcs.add_worktree(repo, workspace, session.branch_name)
        if not result.ok:
            raise WorktreeCreationError(
                f"git worktree add failed for {session.branch_name}: {result.detail}",
            )

        try:
            # A file keeps multi-line prompts out of argv quoting.
            session.prompt_path.write_text(session.prompt or "", "utf-8")
            if self.credentials is not None:
                self.credentials.stage(session.auth_dir)
        except OSError as error:
            raise WorktreeCreationError(
                f"Could not prepare workspace {workspace}: {error}\n"
                f"Workspace left at {workspace}; "
                f"run 'substrate clean {session.full_name}' to remove it.",
            ) from error
        return workspace

    def discover_source_repo(self, workspace: Path) -> Path | None:
        """Find the repository a worktree was created from."""

        superproject = self.vcs.superproject(workspace)
        if superproject is not None:
            return superproject
        common_dir = self.vcs.common_dir(workspace)
        if common_dir is None:
            return None
        return common_dir.parent

    def teardown(self, session: Session) -> TeardownReport:  # noqa: C901
        """Remove worktree, registry entry and branch; every step is best-effort."""

        workspace = session.workspace_path
        report = TeardownReport(full_name=session.full_name, workspace_existed=workspace.is_dir())

        if report.workspace_existed:
            report.source_repo = self.discover_source_repo(workspace)
            if report.source_repo is None:
                report.record(
                    TeardownStepName.RESOLVE_SOURCE,
                    StepStatus.FAILED,
                    f"Could not determine source repository for {workspace}",
                )
            else:
                report.record(
                    TeardownStepName.RESOLVE_SOURCE,
                    StepStatus.DONE,
                    f"Source repository: {report.source_repo}",
                )
        else:
            report.source_repo = session.source_repo
            report.record(
                TeardownStepName.REMOVE_WORKTREE,
                StepStatus.ALREADY_ABSENT,
                f"Worktree not found: {workspace} (already removed?)",
            )

        repo = report.source_repo
        if report.workspace_existed:
            if repo is not None:
                removed = self.vcs.remove_worktree(repo, workspace)
                if removed.ok:
                    report.record(
                        TeardownStepName.REMOVE_WORKTREE,
                        StepStatus.DONE,
                        f"Worktree removed: {workspace}",
                    )
                else:
                    report.record(
                        TeardownStepName.REMOVE_WORKTREE,
                        StepStatus.FAILED,
                        f"Could not remove worktree via git ({removed.detail}), removing directory.",
                    )
            if workspace.exists():
                try:
                    shutil.rmtree(workspace)
                except OSError as error:
                    report.record(
                        TeardownStepName.DELETE_DIRECTORY,
                        StepStatus.FAILED,
                        f"Could not delete worktree directory {workspace}: {error}",
                    )
                else:
                    report.record(
                        TeardownStepName.DELETE_DIRECTORY,
                        StepStatus.DONE,
                        f"Worktree directory removed: {workspace}",
                    )

        if repo is not None:
            pruned = self.vcs.prune_worktrees(repo)
            if pruned.ok:
                report.record(
                    TeardownStepName.PRUNE_WORKTREES,
                    StepStatus.DONE,
                    f"Pruned worktree registry of {repo}",
                )
            else:
                report.record(
                    TeardownStepName.PRUNE_WORKTREES,
                    StepStatus.FAILED,
                    f"Could not prune worktrees of {repo}: {pruned.detail}",
                )

            deleted = self.vcs.delete_branch(repo, session.branch_name)
            if deleted.ok:
                report.record(
                    TeardownStepName.DELETE_BRANCH,
                    StepStatus.DONE,
                    f"Branch deleted: {session.branch_name}",
                )
            elif deleted.outcome is ToolOutcome.ALREADY_ABSENT:
                report.record(
                    TeardownStepName.DELETE_BRANCH,
                    StepStatus.ALREADY_ABSENT,
                    f"Branch not found: {session.branch_name} (already deleted?)",
                )
            else:
                report.record(
                    TeardownStepName.DELETE_BRANCH,
                    StepStatus.FAILED,
                    f"Could not delete branch {session.branch_name}: {deleted.detail}",
                )
        else:
            report.record(
                TeardownStepName.DELETE_BRANCH,
                StepStatus.SKIPPED,
                f"Could not determine source repo; branch {session.branch_name} not deleted.",
            )

        for step in report.warnings:
            logger.info(
                "%s: %s [%s] %s",
                session.full_name,
                step.name.value,
                step.status.value,
                step.message,
            )
        return report

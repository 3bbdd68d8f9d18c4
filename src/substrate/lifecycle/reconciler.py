"""Cleanup of sessions: stop if forced, then tear the workspace down."""

from __future__ import annotations

import logging
from pathlib import Path

from substrate.lifecycle.errors import SessionStillRunningError, SubstrateError
from substrate.lifecycle.identity import validate_task_name
from substrate.lifecycle.models import CleanResult, CleanStatus, Session, StopReport
from substrate.lifecycle.supervisor import SessionSupervisor
from substrate.lifecycle.workspace import WorkspaceProvisioner

logger = logging.getLogger(__name__)


class LifecycleReconciler:
    """Drives supervisor and provisioner to reclaim session resources."""

    def __init__(
        self,
        *,
        supervisor: SessionSupervisor,
        provisioner: WorkspaceProvisioner,
        worktree_base: Path,
    ) -> None:
        self.supervisor = supervisor
        self.provisioner = provisioner
        self.worktree_base = worktree_base

    def discover_targets(self) -> list[str]:
        """Workspace directories under the base path; they may outlive their sessions."""

        if not self.worktree_base.is_dir():
            return []
        return sorted(entry.name for entry in self.worktree_base.iterdir() if entry.is_dir())

    def clean(self, full_name: str, *, force: bool = False) -> CleanResult:
        """Clean one session; refuses a running sandbox unless ``force``."""

        validate_task_name(full_name)
        stop_report: StopReport | None = None
        if self.supervisor.is_sandbox_running(full_name):
            if not force:
                raise SessionStillRunningError(
                    f"Container {Session.from_full_name(full_name, self.worktree_base).handle} "
                    "is still running. Use --force to stop it first.",
                )
            logger.info("Force-stopping running container for %s", full_name)
            stop_report = self.supervisor.stop(full_name)
            session_closed = stop_report.context_closed
        else:
            # The run script keeps its pane open after the agent exits.
            session_closed = self.supervisor.close_session(full_name)

        session = Session.from_full_name(full_name, self.worktree_base)
        teardown = self.provisioner.teardown(session)
        return CleanResult(
            full_name=full_name,
            status=teardown.status,
            stop=stop_report,
            session_closed=session_closed,
            teardown=teardown,
        )

    def clean_all(self, *, force: bool = False) -> list[CleanResult]:
        """Clean every workspace independently; one failure never stops the rest."""

        results: list[CleanResult] = []
        for full_name in self.discover_targets():
            try:
                result = self.clean(full_name, force=force)
            except SubstrateError as error:
                logger.warning("Clean failed for %s: %s", full_name, error)
                result = CleanResult(
                    full_name=full_name,
                    status=CleanStatus.FAILED,
                    error=str(error),
                )
            else:
                if result.status is CleanStatus.FAILED:
                    logger.warning("Clean incomplete for %s", full_name)
            results.append(result)
        return results

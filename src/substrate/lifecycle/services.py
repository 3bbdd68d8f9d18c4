"""Use-case services for starting agent sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from substrate.config import ResourceLimits, Settings
from substrate.lifecycle.backend import (
    DockerCli,
    GitCli,
    Multiplexer,
    SandboxRuntime,
    SubprocessRunner,
    TmuxCli,
    ToolOutcome,
    VersionControl,
)
from substrate.lifecycle.credentials import CredentialBundle
from substrate.lifecycle.errors import SandboxLaunchError, ValidationError
from substrate.lifecycle.identity import allocate, validate_task_name
from substrate.lifecycle.launcher import (
    LaunchCommand,
    build_launch_command,
    host_identity,
    write_run_script,
)
from substrate.lifecycle.models import Session
from substrate.lifecycle.reconciler import LifecycleReconciler
from substrate.lifecycle.supervisor import SessionSupervisor
from substrate.lifecycle.workspace import WorkspaceProvisioner, resolve_repository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Toolkit:
    """External registries the lifecycle manager talks to."""

    vcs: VersionControl
    sandbox: SandboxRuntime
    multiplexer: Multiplexer

    @classmethod
    def from_settings(cls, settings: Settings) -> Toolkit:
        runner = SubprocessRunner(default_timeout_seconds=settings.tools.timeout_seconds)
        return cls(
            vcs=GitCli(runner, executable=settings.tools.git_bin),
            sandbox=DockerCli(runner, executable=settings.tools.docker_bin),
            multiplexer=TmuxCli(runner, executable=settings.tools.tmux_bin),
        )


@dataclass(slots=True)
class RunSession:
    """High-level command to start one agent."""

    repo: Path
    task_name: str
    prompt: str
    image: str
    limits: ResourceLimits


@dataclass(slots=True)
class RunOutcome:
    """What ``run`` created."""

    session: Session
    base_commit: str | None
    launch: LaunchCommand
    script_path: Path


class SubstrateService:
    """Wires identity, workspace, launcher and supervisor together."""

    def __init__(
        self,
        *,
        settings: Settings,
        toolkit: Toolkit,
        host_ids: tuple[int, int] | None = None,
        script_dir: Path | None = None,
    ) -> None:
        self.settings = settings
        self.toolkit = toolkit
        self.host_ids = host_ids
        self.script_dir = script_dir
        self.supervisor = SessionSupervisor(
            multiplexer=toolkit.multiplexer,
            sandbox=toolkit.sandbox,
        )

    def provisioner(self, credentials: CredentialBundle | None = None) -> WorkspaceProvisioner:
        return WorkspaceProvisioner(vcs=self.toolkit.vcs, credentials=credentials)

    def reconciler(self) -> LifecycleReconciler:
        return LifecycleReconciler(
            supervisor=self.supervisor,
            provisioner=self.provisioner(),
            worktree_base=self.settings.worktree_base,
        )

    def run(self, command: RunSession) -> RunOutcome:
        """Provision a workspace and start its sandbox without waiting for it."""

        task_name = validate_task_name(command.task_name)
        if not command.prompt.strip():
            raise ValidationError("--prompt must not be empty.")
        repo = resolve_repository(command.repo)
        credentials = CredentialBundle.from_directory(self.settings.claude_config_dir)

        image_check = self.toolkit.sandbox.image_exists(command.image)
        if not image_check.ok:
            reason = (
                f"image {command.image} not found"
                if image_check.outcome is ToolOutcome.NOT_FOUND
                else image_check.detail
            )
            raise SandboxLaunchError(f"Cannot launch sandbox: {reason}")

        session = allocate(
            task_name,
            worktree_base=self.settings.worktree_base,
            source_repo=repo,
            prompt=command.prompt,
            is_taken=self._is_taken,
            id_bytes=self.settings.id_bytes,
        )
        self.provisioner(credentials).provision(repo, session)
        base_commit = self.toolkit.vcs.resolve_commit(session.workspace_path)

        uid, gid = self.host_ids or host_identity()
        launch = build_launch_command(
            session,
            command.limits,
            image=command.image,
            host_uid=uid,
            host_gid=gid,
            docker_bin=self.settings.tools.docker_bin,
        )
        script_path: Path | None = None
        try:
            script_path = write_run_script(launch, directory=self.script_dir)
            self.supervisor.start(session, script_path)
        except SandboxLaunchError as error:
            # Only a started session deletes its own script.
            if script_path is not None:
                script_path.unlink(missing_ok=True)
            raise SandboxLaunchError(
                f"{error}\nWorkspace left at {session.workspace_path}; "
                f"run 'substrate clean {session.full_name}' to remove it.",
            ) from error
        logger.info("Agent %s started from %s", session.full_name, repo)
        return RunOutcome(
            session=session,
            base_commit=base_commit,
            launch=launch,
            script_path=script_path,
        )

    def _is_taken(self, session: Session) -> bool:
        if session.workspace_path.exists():
            return True
        if session.source_repo is not None and self.toolkit.vcs.branch_exists(
            session.source_repo,
            session.branch_name,
        ):
            return True
        return self.toolkit.multiplexer.has_session(session.handle)

"""Controllers for session lifecycle CLI commands."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from substrate.config import ResourceLimits, Settings, validate_limits
from substrate.lifecycle.errors import ValidationError
from substrate.lifecycle.identity import validate_task_name
from substrate.lifecycle.models import SESSION_PREFIX, CleanResult, CleanStatus, StopReport
from substrate.lifecycle.services import RunOutcome, RunSession, SubstrateService, Toolkit


@dataclass(slots=True)
class RunCommand:
    """CLI input for starting an agent."""

    repo: Path
    name: str
    prompt: str
    image: str | None = None
    cpus: str | None = None
    memory: str | None = None


@dataclass(slots=True)
class StopCommand:
    """CLI input for stopping an agent."""

    name: str


@dataclass(slots=True)
class CleanCommand:
    """CLI input for cleaning one or all agents."""

    name: str | None
    clean_all: bool
    force: bool


@dataclass(slots=True)
class StopResult:
    """Stop report to render in CLI."""

    lines: list[str]
    found: bool


@dataclass(slots=True)
class CleanReport:
    """Clean report to render in CLI."""

    lines: list[str]
    success: bool


class SubstrateCliController:
    """Coordinates run, attach, list, stop and clean operations."""

    def __init__(
        self,
        *,
        settings_factory: Callable[[], Settings] = Settings.from_env,
        toolkit_factory: Callable[[Settings], Toolkit] = Toolkit.from_settings,
        host_ids: tuple[int, int] | None = None,
        script_dir: Path | None = None,
    ) -> None:
        self.settings_factory = settings_factory
        self.toolkit_factory = toolkit_factory
        self.host_ids = host_ids
        self.script_dir = script_dir

    def run(self, command: RunCommand) -> tuple[list[str], RunOutcome]:
        settings = self._settings()
        limits = ResourceLimits(
            cpus=command.cpus or settings.sandbox.limits.cpus,
            memory=command.memory or settings.sandbox.limits.memory,
        )
        try:
            validate_limits(limits)
        except ValueError as error:
            raise ValidationError(str(error)) from error

        outcome = self._service(settings).run(
            RunSession(
                repo=command.repo,
                task_name=command.name,
                prompt=command.prompt,
                image=command.image or settings.sandbox.image,
                limits=limits,
            ),
        )
        session = outcome.session
        lines = [
            f"Created worktree: {session.workspace_path} (branch: {session.branch_name})",
            "",
            "Agent started:",
            f"  Session:  {session.handle}",
            f"  Branch:   {session.branch_name}",
            f"  Worktree: {session.workspace_path}",
            f"  Base:     {outcome.base_commit or '-'}",
            f"  Attach:   substrate attach {session.full_name}",
        ]
        return lines, outcome

    def attach(self, name: str) -> None:
        validate_task_name(name)
        self._service(self._settings()).supervisor.attach(name)

    def list_active(self) -> list[str]:
        names = self._service(self._settings()).supervisor.list_active()
        lines = ["Active agents:"]
        if not names:
            lines.append("  (none)")
        lines.extend(f"  {name}" for name in names)
        return lines

    def stop(self, command: StopCommand) -> StopResult:
        validate_task_name(command.name)
        report = self._service(self._settings()).supervisor.stop(command.name)
        lines = [*_render_stop(report), f"Stopped: {command.name}"]
        return StopResult(lines=lines, found=report.found_anything)

    def clean(self, command: CleanCommand) -> CleanReport:
        if not command.clean_all and not command.name:
            raise ValidationError("Usage: substrate clean <name> [--force] | --all [--force]")

        reconciler = self._service(self._settings()).reconciler()
        if command.clean_all:
            results = reconciler.clean_all(force=command.force)
            if not results:
                return CleanReport(lines=["No substrate worktrees found."], success=True)
        else:
            results = [reconciler.clean(command.name or "", force=command.force)]

        lines: list[str] = []
        for result in results:
            lines.extend(_render_clean(result))
        failed = [result.full_name for result in results if result.status is CleanStatus.FAILED]
        if command.clean_all:
            lines.append(
                f"Clean summary: total={len(results)} "
                f"removed={_count(results, CleanStatus.REMOVED)} "
                f"already_absent={_count(results, CleanStatus.ALREADY_ABSENT)} "
                f"failed={len(failed)}",
            )
        return CleanReport(lines=lines, success=not failed)

    def _settings(self) -> Settings:
        settings = self.settings_factory()
        try:
            settings.validate()
        except ValueError as error:
            raise ValidationError(str(error)) from error
        return settings

    def _service(self, settings: Settings) -> SubstrateService:
        return SubstrateService(
            settings=settings,
            toolkit=self.toolkit_factory(settings),
            host_ids=self.host_ids,
            script_dir=self.script_dir,
        )


def _render_stop(report: StopReport) -> list[str]:
    return [
        "Container stopped."
        if report.sandbox_stopped
        else "No container found (may have already exited).",
        "Session closed." if report.context_closed else "No session found.",
    ]


def _render_clean(result: CleanResult) -> list[str]:
    lines: list[str] = []
    if result.stop is not None:
        lines.append(f"Force-stopping running container for {result.full_name}")
        lines.extend(_render_stop(result.stop))
    elif result.session_closed:
        lines.append(f"Session closed: {SESSION_PREFIX}{result.full_name}")
    if result.teardown is not None:
        for step in result.teardown.steps:
            prefix = "Warning: " if step.is_warning else ""
            lines.append(f"{prefix}{step.message}")

    if result.status is CleanStatus.REMOVED:
        lines.append(f"Cleaned: {result.full_name}")
    elif result.status is CleanStatus.ALREADY_ABSENT:
        lines.append(f"Already absent: {result.full_name}")
    else:
        lines.append(f"Failed: {result.full_name} ({result.error or 'teardown incomplete'})")
    return lines


def _count(results: list[CleanResult], status: CleanStatus) -> int:
    return sum(1 for result in results if result.status is status)

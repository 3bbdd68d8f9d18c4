"""Sandbox launch command construction."""

from __future__ import annotations

import os
import shlex
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path

from substrate.config import ResourceLimits
from substrate.lifecycle.errors import SandboxLaunchError
from substrate.lifecycle.models import SANDBOX_AUTH_MOUNT, SANDBOX_WORKDIR, Session

PROMPT_FLAG = "-p"
RUN_SCRIPT_PREFIX = "substrate-run-"
FINISHED_BANNER = "=== Agent finished. Press enter to close. ==="


@dataclass(slots=True, frozen=True)
class LaunchCommand:
    """Container invocation; the prompt is read from ``prompt_file`` when it runs."""

    argv: tuple[str, ...]
    prompt_file: Path
    prompt_flag: str = PROMPT_FLAG

    def shell_line(self) -> str:
        quoted = shlex.join(self.argv)
        prompt_source = shlex.quote(str(self.prompt_file))
        return f'{quoted} {self.prompt_flag} "$(cat {prompt_source})"'


def build_launch_command(  # noqa: PLR0913
    session: Session,
    limits: ResourceLimits,
    *,
    image: str,
    host_uid: int,
    host_gid: int,
    docker_bin: str = "docker",
) -> LaunchCommand:
    """Docker invocation binding the sandbox to the session's workspace."""

    argv = [
        docker_bin,
        "run",
        "-it",
        "--rm",
        "--name",
        session.handle,
        "--cpus",
        str(limits.cpus),
        "--memory",
        str(limits.memory),
        "-e",
        f"HOST_UID={host_uid}",
        "-e",
        f"HOST_GID={host_gid}",
    ]
    if session.source_repo is not None:
        # The worktree's .git file points at the source repo by absolute path.
        git_dir = session.source_repo / ".git"
        argv.extend(["-v", f"{git_dir}:{git_dir}"])
    argv.extend(
        [
            "-v",
            f"{session.workspace_path}:{SANDBOX_WORKDIR}",
            "-v",
            f"{session.auth_dir}:{SANDBOX_AUTH_MOUNT}:ro",
            image,
        ],
    )
    return LaunchCommand(argv=tuple(argv), prompt_file=session.prompt_path)


def host_identity() -> tuple[int, int]:
    """UID and GID the entrypoint should remap the sandbox user to."""

    return os.getuid(), os.getgid()


def render_run_script(command: LaunchCommand, *, script_path: Path) -> str:
    """Script run inside the multiplexer; keeps the pane open after the agent exits."""

    return (
        "#!/usr/bin/env bash\n"
        f"{command.shell_line()}\n"
        "\n"
        'echo ""\n'
        f"echo {shlex.quote(FINISHED_BANNER)}\n"
        "read -r\n"
        f"rm -f {shlex.quote(str(script_path))}\n"
    )


def write_run_script(command: LaunchCommand, *, directory: Path | None = None) -> Path:
    """Write an executable run script to a fresh temp file."""

    try:
        handle, name = tempfile.mkstemp(prefix=RUN_SCRIPT_PREFIX, suffix=".sh", dir=directory)
        script_path = Path(name)
        with os.fdopen(handle, "w", encoding="utf-8") as script:
            script.write(render_run_script(command, script_path=script_path))
        script_path.chmod(stat.S_IMODE(script_path.stat().st_mode) | stat.S_IXUSR)
    except OSError as error:
        raise SandboxLaunchError(f"Could not write run script: {error}") from error
    return script_path

"""CLI entrypoint for substrate."""

from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import rich_click as click

from substrate import __version__
from substrate.lifecycle.controllers import (
    CleanCommand,
    RunCommand,
    StopCommand,
    SubstrateCliController,
)
from substrate.lifecycle.errors import SubstrateError

click.rich_click.USE_MARKDOWN = True
CONTROLLER = SubstrateCliController()

T = TypeVar("T")


@click.group()
@click.version_option(version=__version__, prog_name="substrate")
def substrate() -> None:
    """Container runtime for Claude Code agents.

    Each agent runs in its own container on its own git worktree and branch,
    wrapped in a tmux session you can attach to.
    """


@substrate.command("run")
@click.option(
    "--repo",
    type=click.Path(path_type=Path),
    required=True,
    help="Path to the git repository.",
)
@click.option("--name", required=True, help="Human-readable name for the task.")
@click.option("--prompt", required=True, help="The prompt/task for the agent.")
@click.option(
    "--attach/--no-attach",
    "do_attach",
    default=False,
    show_default=True,
    help="Immediately attach to the agent after starting.",
)
@click.option("--image", default=None, help="Sandbox image. Defaults to SUBSTRATE_IMAGE.")
@click.option("--cpus", default=None, help="CPU limit. Defaults to SUBSTRATE_CPUS.")
@click.option("--memory", default=None, help="Memory limit. Defaults to SUBSTRATE_MEMORY.")
def run(  # noqa: PLR0913
    repo: Path,
    name: str,
    prompt: str,
    do_attach: bool,
    image: str | None,
    cpus: str | None,
    memory: str | None,
) -> None:
    """Start an agent in a container."""

    lines, outcome = _guard(
        lambda: CONTROLLER.run(
            RunCommand(
                repo=repo,
                name=name,
                prompt=prompt,
                image=image,
                cpus=cpus,
                memory=memory,
            ),
        ),
    )
    _emit_lines(lines)
    if do_attach:
        _guard(lambda: CONTROLLER.attach(outcome.session.full_name))


@substrate.command("attach")
@click.argument("name")
def attach(name: str) -> None:
    """Attach to a running agent session."""

    _guard(lambda: CONTROLLER.attach(name))


@substrate.command("list")
def list_agents() -> None:
    """List running agents."""

    _emit_lines(_guard(CONTROLLER.list_active))


@substrate.command("stop")
@click.argument("name")
def stop(name: str) -> None:
    """Stop a running agent and close its session."""

    result = _guard(lambda: CONTROLLER.stop(StopCommand(name=name)))
    _emit_lines(result.lines)
    if not result.found:
        raise click.ClickException(
            f"No session found: {name}. Run 'substrate list' to see active agents.",
        )


@substrate.command("clean")
@click.argument("name", required=False)
@click.option(
    "--all",
    "clean_all",
    is_flag=True,
    default=False,
    help="Clean all substrate worktrees and branches.",
)
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Stop a running container before cleaning.",
)
def clean(name: str | None, clean_all: bool, force: bool) -> None:
    """Remove worktree and branch for a stopped agent."""

    report = _guard(
        lambda: CONTROLLER.clean(CleanCommand(name=name, clean_all=clean_all, force=force)),
    )
    _emit_lines(report.lines)
    if not report.success:
        raise click.ClickException("Clean finished with failures.")


def _guard(action: Callable[[], T]) -> T:
    try:
        return action()
    except SubstrateError as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    substrate()

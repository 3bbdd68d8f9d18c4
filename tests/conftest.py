"""Shared test fixtures and in-memory tool registries."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from substrate import main
from substrate.config import Settings
from substrate.lifecycle.backend import GitCli, SubprocessRunner, ToolOutcome, ToolResult
from substrate.lifecycle.controllers import SubstrateCliController
from substrate.lifecycle.services import Toolkit


def _ok() -> ToolResult:
    return ToolResult(outcome=ToolOutcome.OK, exit_code=0)


def _absent(message: str) -> ToolResult:
    return ToolResult(outcome=ToolOutcome.ALREADY_ABSENT, exit_code=1, stderr=message)


class FakeSandbox:
    """Container runtime keeping running names in memory."""

    def __init__(self, images: tuple[str, ...] = ("substrate:latest",)) -> None:
        self.running: set[str] = set()
        self.images = set(images)
        self.calls: list[tuple[str, str]] = []

    def is_running(self, name: str) -> bool:
        return name in self.running

    def list_names(self) -> list[str]:
        return sorted(self.running)

    def stop(self, name: str) -> ToolResult:
        self.calls.append(("stop", name))
        if name not in self.running:
            return _absent(f"Error response from daemon: No such container: {name}")
        self.running.discard(name)
        return _ok()

    def remove(self, name: str) -> ToolResult:
        self.calls.append(("remove", name))
        return _absent(f"Error response from daemon: No such container: {name}")

    def image_exists(self, image: str) -> ToolResult:
        if image in self.images:
            return _ok()
        return ToolResult(
            outcome=ToolOutcome.NOT_FOUND,
            exit_code=1,
            stderr=f"Error: No such image: {image}",
        )


class FakeMultiplexer:
    """tmux stand-in; starting a session also starts its container."""

    def __init__(self, sandbox: FakeSandbox | None = None) -> None:
        self.sandbox = sandbox
        self.sessions: dict[str, str] = {}
        self.attached: list[str] = []
        self.fail_new_session = False

    def new_session(self, name: str, command: str) -> ToolResult:
        if self.fail_new_session:
            return ToolResult(
                outcome=ToolOutcome.FAILED,
                exit_code=1,
                stderr="server exited unexpectedly",
            )
        if name in self.sessions:
            return ToolResult(
                outcome=ToolOutcome.FAILED,
                exit_code=1,
                stderr=f"duplicate session: {name}",
            )
        self.sessions[name] = command
        if self.sandbox is not None:
            self.sandbox.running.add(name)
        return _ok()

    def has_session(self, name: str) -> bool:
        return name in self.sessions

    def attach(self, name: str) -> ToolResult:
        self.attached.append(name)
        return _ok()

    def list_sessions(self) -> list[str]:
        return list(self.sessions)

    def kill_session(self, name: str) -> ToolResult:
        if self.sessions.pop(name, None) is None:
            return _absent(f"can't find session: {name}")
        return _ok()


class FakeVcs:
    """Worktree registry simulated on the filesystem without git."""

    def __init__(self) -> None:
        self.branches: dict[Path, set[str]] = {}
        self.worktrees: dict[Path, Path] = {}
        self.fail_prune = False
        self.fail_branch_delete = False
        self.calls: list[str] = []

    def add_repo(self, repo: Path) -> Path:
        (repo / ".git").mkdir(parents=True, exist_ok=True)
        self.branches.setdefault(repo.resolve(), {"main"})
        return repo.resolve()

    def add_worktree(self, repo: Path, path: Path, branch: str) -> ToolResult:
        self.calls.append("add_worktree")
        branches = self.branches.setdefault(repo, set())
        if branch in branches:
            return ToolResult(
                outcome=ToolOutcome.FAILED,
                exit_code=255,
                stderr=f"fatal: a branch named '{branch}' already exists",
            )
        path.mkdir(parents=True)
        (path / ".git").write_text(f"gitdir: {repo}/.git/worktrees/{path.name}\n", "utf-8")
        branches.add(branch)
        self.worktrees[path] = repo
        return _ok()

    def remove_worktree(self, repo: Path, path: Path) -> ToolResult:
        self.calls.append("remove_worktree")
        if self.worktrees.pop(path, None) is None:
            return _absent(f"fatal: '{path}' is not a working tree")
        shutil.rmtree(path)
        return _ok()

    def prune_worktrees(self, repo: Path) -> ToolResult:
        self.calls.append("prune_worktrees")
        if self.fail_prune:
            return ToolResult(outcome=ToolOutcome.FAILED, exit_code=1, stderr="prune exploded")
        return _ok()

    def delete_branch(self, repo: Path, branch: str) -> ToolResult:
        self.calls.append("delete_branch")
        if self.fail_branch_delete:
            return ToolResult(outcome=ToolOutcome.FAILED, exit_code=1, stderr="ref locked")
        branches = self.branches.get(repo, set())
        if branch not in branches:
            return _absent(f"error: branch '{branch}' not found.")
        branches.discard(branch)
        return _ok()

    def branch_exists(self, repo: Path, branch: str) -> bool:
        return branch in self.branches.get(repo, set())

    def resolve_commit(self, repo: Path, rev: str = "HEAD") -> str | None:
        return "0" * 40

    def superproject(self, path: Path) -> Path | None:
        return None

    def common_dir(self, path: Path) -> Path | None:
        repo = self.worktrees.get(path)
        return repo / ".git" if repo is not None else None


@pytest.fixture()
def sandbox() -> FakeSandbox:
    return FakeSandbox()


@pytest.fixture()
def multiplexer(sandbox: FakeSandbox) -> FakeMultiplexer:
    return FakeMultiplexer(sandbox)


@pytest.fixture()
def fake_vcs() -> FakeVcs:
    return FakeVcs()


@pytest.fixture()
def claude_config_dir(tmp_path: Path) -> Path:
    config_dir = tmp_path / "claude"
    config_dir.mkdir()
    (config_dir / ".credentials.json").write_text('{"token": "secret"}', "utf-8")
    (config_dir / "settings.json").write_text("{}", "utf-8")
    return config_dir


@pytest.fixture()
def settings(tmp_path: Path, claude_config_dir: Path) -> Settings:
    return Settings(worktree_base=tmp_path / "worktrees", claude_config_dir=claude_config_dir)


@pytest.fixture()
def git():
    """Run git in a repository with a fixed identity; skips when git is missing."""

    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    return _git


@pytest.fixture()
def git_repo(tmp_path: Path, git) -> Path:
    """Real repository with one commit on ``main``."""

    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q", "-b", "main")
    (repo / "README.md").write_text("hello\n", "utf-8")
    git(repo, "add", "README.md")
    git(repo, "commit", "-q", "-m", "initial")
    return repo.resolve()


@pytest.fixture()
def git_cli(git) -> GitCli:
    return GitCli(SubprocessRunner(default_timeout_seconds=30))


@pytest.fixture()
def script_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "scripts"
    directory.mkdir()
    return directory


@pytest.fixture()
def install_controller(
    monkeypatch,
    settings: Settings,
    sandbox: FakeSandbox,
    multiplexer: FakeMultiplexer,
    script_dir: Path,
):
    """Point the CLI at a controller wired to the given VCS and in-memory docker/tmux."""

    def _install(vcs) -> SubstrateCliController:
        controller = SubstrateCliController(
            settings_factory=lambda: settings,
            toolkit_factory=lambda _settings: Toolkit(
                vcs=vcs,
                sandbox=sandbox,
                multiplexer=multiplexer,
            ),
            host_ids=(1000, 1000),
            script_dir=script_dir,
        )
        monkeypatch.setattr(main, "CONTROLLER", controller)
        return controller

    return _install


def _git(repo: Path, *args: str) -> str:
    completed = subprocess.run(  # noqa: S603
        [
            "git",
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.com",
            "-C",
            str(repo),
            *args,
        ],
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()

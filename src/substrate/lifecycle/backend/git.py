"""Git worktree and branch registry adapter."""

from __future__ import annotations

from pathlib import Path

from substrate.lifecycle.backend.base import CommandRunner, ToolOutcome, ToolRequest, ToolResult
from substrate.lifecycle.backend.outcomes import (
    GIT_BRANCH_ABSENT_PATTERNS,
    GIT_WORKTREE_ABSENT_PATTERNS,
)


class GitCli:
    """Version-control operations backed by the ``git`` executable."""

    def __init__(self, runner: CommandRunner, *, executable: str = "git") -> None:
        self.runner = runner
        self.executable = executable

    def add_worktree(self, repo: Path, path: Path, branch: str) -> ToolResult:
        return self._git(repo, "worktree", "add", str(path), "-b", branch)

    def remove_worktree(self, repo: Path, path: Path) -> ToolResult:
        return self._git(
            repo,
            "worktree",
            "remove",
            "--force",
            str(path),
            absent_patterns=GIT_WORKTREE_ABSENT_PATTERNS,
        )

    def prune_worktrees(self, repo: Path) -> ToolResult:
        return self._git(repo, "worktree", "prune")

    def delete_branch(self, repo: Path, branch: str) -> ToolResult:
        return self._git(repo, "branch", "-D", branch, absent_patterns=GIT_BRANCH_ABSENT_PATTERNS)

    def branch_exists(self, repo: Path, branch: str) -> bool:
        return self._git(repo, "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}").ok

    def resolve_commit(self, repo: Path, rev: str = "HEAD") -> str | None:
        result = self._git(repo, "rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}")
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def superproject(self, path: Path) -> Path | None:
        """Working tree of the superproject, when ``path`` is a submodule checkout."""

        result = self._git(path, "rev-parse", "--show-superproject-working-tree")
        value = result.stdout.strip() if result.ok else ""
        return Path(value) if value else None

    def common_dir(self, path: Path) -> Path | None:
        """Absolute shared git directory; may be reported relative to ``path``."""

        result = self._git(path, "rev-parse", "--git-common-dir")
        value = result.stdout.strip() if result.ok else ""
        if not value:
            return None
        common = Path(value)
        if not common.is_absolute():
            common = path / common
        return common.resolve()

    def _git(
        self,
        repo: Path,
        *args: str,
        absent_patterns: tuple[str, ...] = (),
    ) -> ToolResult:
        return self.runner.run(
            ToolRequest(
                argv=[self.executable, "-C", str(repo), *args],
                absent_patterns=absent_patterns,
                absent_outcome=ToolOutcome.ALREADY_ABSENT,
            ),
        )

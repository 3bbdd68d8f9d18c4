from __future__ import annotations

import stat
from pathlib import Path

import allure
import pytest

from substrate.lifecycle.backend import ToolOutcome, ToolResult
from substrate.lifecycle.credentials import CredentialBundle
from substrate.lifecycle.errors import (
    NotARepositoryError,
    ValidationError,
    WorktreeCreationError,
)
from substrate.lifecycle.models import (
    CleanStatus,
    Session,
    StepStatus,
    TeardownStepName,
)
from substrate.lifecycle.workspace import WorkspaceProvisioner

pytestmark = [
    allure.epic("Session Lifecycle"),
    allure.feature("Workspace Provisioning"),
]


def _session(base: Path, repo: Path | None = None, prompt: str = "do X") -> Session:
    return Session(
        task_name="fix",
        session_id="a1b2",
        worktree_base=base,
        source_repo=repo,
        prompt=prompt,
    )


def test_provision_forks_branch_from_current_head(
    tmp_path: Path,
    git_repo: Path,
    git_cli,
    git,
) -> None:
    head = git(git_repo, "rev-parse", "HEAD")
    session = _session(tmp_path / "worktrees", git_repo)

    workspace = WorkspaceProvisioner(vcs=git_cli).provision(git_repo, session)

    assert workspace == tmp_path / "worktrees" / "fix-a1b2"
    assert (workspace / "README.md").read_text("utf-8") == "hello\n"
    assert git(git_repo, "rev-parse", "substrate/fix-a1b2") == head
    assert git(workspace, "rev-parse", "--abbrev-ref", "HEAD") == "substrate/fix-a1b2"


def test_provision_writes_prompt_file_verbatim(tmp_path: Path, git_repo: Path, git_cli) -> None:
    prompt = "line one\nit's \"quoted\" and $HOME stays literal"
    session = _session(tmp_path / "worktrees", git_repo, prompt=prompt)

    WorkspaceProvisioner(vcs=git_cli).provision(git_repo, session)

    assert session.prompt_path.read_text("utf-8") == prompt


def test_provision_stages_credentials_readable_by_others(
    tmp_path: Path,
    git_repo: Path,
    git_cli,
    claude_config_dir: Path,
) -> None:
    (claude_config_dir / ".credentials.json").chmod(0o600)
    bundle = CredentialBundle.from_directory(claude_config_dir)
    session = _session(tmp_path / "worktrees", git_repo)

    WorkspaceProvisioner(vcs=git_cli, credentials=bundle).provision(git_repo, session)

    staged = session.auth_dir / ".credentials.json"
    assert staged.read_text("utf-8") == '{"token": "secret"}'
    assert staged.stat().st_mode & stat.S_IROTH
    assert (session.auth_dir / "settings.json").exists()
    assert session.auth_dir.stat().st_mode & stat.S_IXOTH


def test_provision_rejects_non_repository(tmp_path: Path, fake_vcs) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()

    with pytest.raises(NotARepositoryError, match="is not a git repository"):
        WorkspaceProvisioner(vcs=fake_vcs).provision(plain, _session(tmp_path / "wt"))
    assert fake_vcs.calls == []


def test_provision_branch_collision_raises(
    tmp_path: Path,
    git_repo: Path,
    git_cli,
    git,
) -> None:
    git(git_repo, "branch", "substrate/fix-a1b2")
    session = _session(tmp_path / "worktrees", git_repo)

    with pytest.raises(WorktreeCreationError, match="substrate/fix-a1b2"):
        WorkspaceProvisioner(vcs=git_cli).provision(git_repo, session)


def test_provision_preparation_failure_names_leftover_workspace(
    tmp_path: Path,
    git_repo: Path,
    git_cli,
    git,
) -> None:
    (git_repo / ".substrate-prompt").mkdir()
    (git_repo / ".substrate-prompt" / "x").write_text("tracked\n", "utf-8")
    git(git_repo, "add", ".substrate-prompt/x")
    git(git_repo, "commit", "-q", "-m", "track prompt dir")
    session = _session(tmp_path / "worktrees", git_repo)

    with pytest.raises(WorktreeCreationError, match="substrate clean fix-a1b2") as excinfo:
        WorkspaceProvisioner(vcs=git_cli).provision(git_repo, session)

    assert isinstance(excinfo.value.__cause__, OSError)
    assert session.workspace_path.is_dir()


def test_provision_credential_staging_failure_is_reported(
    tmp_path: Path,
    fake_vcs,
    claude_config_dir: Path,
) -> None:
    repo = fake_vcs.add_repo(tmp_path / "repo")
    session = _session(tmp_path / "worktrees", repo)
    bundle = CredentialBundle.from_directory(claude_config_dir)
    (claude_config_dir / ".credentials.json").unlink()

    with pytest.raises(WorktreeCreationError, match="Could not prepare workspace"):
        WorkspaceProvisioner(vcs=fake_vcs, credentials=bundle).provision(repo, session)


def test_credentials_require_token_file(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="credentials not found"):
        CredentialBundle.from_directory(tmp_path)


def test_credentials_settings_file_is_optional(tmp_path: Path) -> None:
    (tmp_path / ".credentials.json").write_text("{}", "utf-8")
    bundle = CredentialBundle.from_directory(tmp_path)
    assert bundle.settings_path is None
    assert bundle.files() == [tmp_path / ".credentials.json"]


def test_teardown_removes_dirty_worktree_and_branch(
    tmp_path: Path,
    git_repo: Path,
    git_cli,
    git,
) -> None:
    session = _session(tmp_path / "worktrees", git_repo)
    provisioner = WorkspaceProvisioner(vcs=git_cli)
    provisioner.provision(git_repo, session)
    (session.workspace_path / "README.md").write_text("changed\n", "utf-8")
    (session.workspace_path / "untracked.txt").write_text("new\n", "utf-8")

    report = provisioner.teardown(Session.from_full_name("fix-a1b2", tmp_path / "worktrees"))

    assert report.status is CleanStatus.REMOVED
    assert report.source_repo == git_repo
    assert not session.workspace_path.exists()
    assert git(git_repo, "branch", "--list", "substrate/fix-a1b2") == ""
    assert "fix-a1b2" not in git(git_repo, "worktree", "list")


def test_teardown_twice_reports_already_absent(tmp_path: Path, git_repo: Path, git_cli) -> None:
    session = _session(tmp_path / "worktrees", git_repo)
    provisioner = WorkspaceProvisioner(vcs=git_cli)
    provisioner.provision(git_repo, session)
    provisioner.teardown(Session.from_full_name("fix-a1b2", tmp_path / "worktrees"))

    second = provisioner.teardown(Session.from_full_name("fix-a1b2", tmp_path / "worktrees"))

    assert second.status is CleanStatus.ALREADY_ABSENT
    statuses = {step.name: step.status for step in second.steps}
    assert statuses[TeardownStepName.REMOVE_WORKTREE] is StepStatus.ALREADY_ABSENT
    assert statuses[TeardownStepName.DELETE_BRANCH] is StepStatus.SKIPPED


def test_teardown_of_unlinked_directory_deletes_it_but_skips_branch(
    tmp_path: Path,
    git_cli,
) -> None:
    orphan = tmp_path / "worktrees" / "stray-0000"
    orphan.mkdir(parents=True)
    (orphan / "leftover.txt").write_text("x", "utf-8")

    report = WorkspaceProvisioner(vcs=git_cli).teardown(
        Session.from_full_name("stray-0000", tmp_path / "worktrees"),
    )

    assert report.status is CleanStatus.FAILED
    assert not orphan.exists()
    assert report.step(TeardownStepName.RESOLVE_SOURCE).status is StepStatus.FAILED
    assert report.step(TeardownStepName.DELETE_DIRECTORY).status is StepStatus.DONE
    assert report.step(TeardownStepName.DELETE_BRANCH).status is StepStatus.SKIPPED


def test_teardown_continues_after_prune_failure(tmp_path: Path, fake_vcs) -> None:
    repo = fake_vcs.add_repo(tmp_path / "repo")
    session = _session(tmp_path / "worktrees", repo)
    provisioner = WorkspaceProvisioner(vcs=fake_vcs)
    provisioner.provision(repo, session)
    fake_vcs.fail_prune = True

    report = provisioner.teardown(session)

    assert report.status is CleanStatus.REMOVED
    assert report.step(TeardownStepName.PRUNE_WORKTREES).status is StepStatus.FAILED
    assert report.step(TeardownStepName.DELETE_BRANCH).status is StepStatus.DONE
    assert fake_vcs.calls[-3:] == ["remove_worktree", "prune_worktrees", "delete_branch"]


def test_teardown_branch_delete_failure_marks_target_failed(
    tmp_path: Path,
    fake_vcs,
) -> None:
    repo = fake_vcs.add_repo(tmp_path / "repo")
    session = _session(tmp_path / "worktrees", repo)
    provisioner = WorkspaceProvisioner(vcs=fake_vcs)
    provisioner.provision(repo, session)
    fake_vcs.fail_branch_delete = True

    report = provisioner.teardown(session)

    assert report.status is CleanStatus.FAILED
    assert not session.workspace_path.exists()
    assert "ref locked" in report.step(TeardownStepName.DELETE_BRANCH).message


def test_teardown_falls_back_to_rmtree_when_git_refuses(
    tmp_path: Path,
    fake_vcs,
) -> None:
    repo = fake_vcs.add_repo(tmp_path / "repo")
    session = _session(tmp_path / "worktrees", repo)
    provisioner = WorkspaceProvisioner(vcs=fake_vcs)
    provisioner.provision(repo, session)

    def _refuse(_repo: Path, _path: Path) -> ToolResult:
        return ToolResult(outcome=ToolOutcome.FAILED, exit_code=128, stderr="fatal: locked")

    fake_vcs.remove_worktree = _refuse

    report = provisioner.teardown(session)

    assert report.status is CleanStatus.REMOVED
    assert report.step(TeardownStepName.REMOVE_WORKTREE).status is StepStatus.FAILED
    assert report.step(TeardownStepName.DELETE_DIRECTORY).status is StepStatus.DONE
    assert not session.workspace_path.exists()

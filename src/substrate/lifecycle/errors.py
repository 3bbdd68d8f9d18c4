"""Error taxonomy for session lifecycle operations."""

from __future__ import annotations


class SubstrateError(RuntimeError):
    """Base class for errors surfaced to the operator."""


class ValidationError(SubstrateError):
    """Missing or invalid input, raised before any resource is touched."""


class NotARepositoryError(SubstrateError):
    """Source path is not a git repository."""


class WorktreeCreationError(SubstrateError):
    """Branch-backed worktree could not be created."""


class SandboxLaunchError(SubstrateError):
    """Sandbox could not be started; already-created resources are left in place."""


class SessionNotFoundError(SubstrateError):
    """No multiplexer session or sandbox exists for the requested name."""


class SessionStillRunningError(SubstrateError):
    """Sandbox is active and cleaning was requested without force."""


class IdentityAllocationError(SubstrateError):
    """No usable session id could be drawn."""


class ToolInvocationError(SubstrateError):
    """External tool failed on a path that cannot degrade to a warning."""

    def __init__(self, message: str, *, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr

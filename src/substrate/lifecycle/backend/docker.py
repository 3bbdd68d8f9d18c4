"""Docker container runtime adapter."""

from __future__ import annotations

from substrate.lifecycle.backend.base import CommandRunner, ToolOutcome, ToolRequest, ToolResult
from substrate.lifecycle.backend.outcomes import (
    DOCKER_CONTAINER_ABSENT_PATTERNS,
    DOCKER_IMAGE_ABSENT_PATTERNS,
)
from substrate.lifecycle.errors import ToolInvocationError


class DockerCli:
    """Sandbox runtime operations backed by the ``docker`` executable."""

    def __init__(self, runner: CommandRunner, *, executable: str = "docker") -> None:
        self.runner = runner
        self.executable = executable

    def is_running(self, name: str) -> bool:
        # The name filter is a substring match, so compare exact names.
        return name in self._ps("--filter", f"name={name}")

    def list_names(self) -> list[str]:
        return self._ps()

    def stop(self, name: str) -> ToolResult:
        return self._docker("stop", name, absent_patterns=DOCKER_CONTAINER_ABSENT_PATTERNS)

    def remove(self, name: str) -> ToolResult:
        return self._docker("rm", "-f", name, absent_patterns=DOCKER_CONTAINER_ABSENT_PATTERNS)

    def image_exists(self, image: str) -> ToolResult:
        return self.runner.run(
            ToolRequest(
                argv=[self.executable, "image", "inspect", "--format", "{{.Id}}", image],
                absent_patterns=DOCKER_IMAGE_ABSENT_PATTERNS,
                absent_outcome=ToolOutcome.NOT_FOUND,
            ),
        )

    def _ps(self, *filters: str) -> list[str]:
        result = self._docker("ps", *filters, "--format", "{{.Names}}")
        if not result.ok:
            raise ToolInvocationError(
                f"Could not query running containers: {result.detail}",
                stderr=result.stderr,
            )
        return result.lines()

    def _docker(self, *args: str, absent_patterns: tuple[str, ...] = ()) -> ToolResult:
        return self.runner.run(
            ToolRequest(
                argv=[self.executable, *args],
                absent_patterns=absent_patterns,
                absent_outcome=ToolOutcome.ALREADY_ABSENT,
            ),
        )

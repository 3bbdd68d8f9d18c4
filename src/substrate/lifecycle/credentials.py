"""Agent credential bundle staged into each workspace."""

from __future__ import annotations

import shutil
import stat
from dataclasses import dataclass
from pathlib import Path

from substrate.lifecycle.errors import ValidationError

CREDENTIALS_FILENAME = ".credentials.json"
SETTINGS_FILENAME = "settings.json"


@dataclass(slots=True)
class CredentialBundle:
    """Read-only auth material copied into the sandbox mount."""

    credentials_path: Path
    settings_path: Path | None = None

    @classmethod
    def from_directory(cls, config_dir: Path) -> CredentialBundle:
        """Locate the bundle in the agent config dir; credentials are mandatory."""

        credentials_path = config_dir / CREDENTIALS_FILENAME
        if not credentials_path.is_file():
            raise ValidationError(f"Claude credentials not found at {credentials_path}")
        settings_path = config_dir / SETTINGS_FILENAME
        return cls(
            credentials_path=credentials_path,
            settings_path=settings_path if settings_path.is_file() else None,
        )

    def files(self) -> list[Path]:
        paths = [self.credentials_path]
        if self.settings_path is not None:
            paths.append(self.settings_path)
        return paths

    def stage(self, target_dir: Path) -> list[Path]:
        """Copy the bundle into ``target_dir`` readable by any UID."""

        target_dir.mkdir(parents=True, exist_ok=True)
        staged: list[Path] = []
        for source in self.files():
            destination = target_dir / source.name
            shutil.copyfile(source, destination)
            _add_mode(destination, stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH)
            staged.append(destination)
        # The sandbox user has a remapped UID; it needs to enter the directory.
        _add_mode(
            target_dir,
            stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH,
        )
        return staged


def _add_mode(path: Path, bits: int) -> None:
    path.chmod(stat.S_IMODE(path.stat().st_mode) | bits)

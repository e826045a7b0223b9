"""Installs an application package into a working folder instead of the packages root."""

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional

from ..deps.errors import ExtractionFailedError
from ..models.identity import PackageIdentity
from ..models.plugin import PackageManagerPlugin

logger = logging.getLogger(__name__)

CONTENT_FOLDER = "content"


@dataclass
class ExecutableInstallResult:
    """Files copied into the destination for one package."""
    identity: PackageIdentity
    destination: Path
    files: List[Path] = field(default_factory=list)
    manifest_path: Optional[Path] = None


class ExecutablePackagePlugin(PackageManagerPlugin):
    """Copies the content files of one package into ``destination``.

    When the named package is about to be extracted, its ``content/`` files
    are written below ``destination`` (without the ``content/`` prefix) and
    the package manifest is saved next to them as ``<id>.pkm.yml``. The
    plugin then declines extraction, so the package never lands in the
    packages root; its dependencies install normally.

    Args:
        package_id: Id of the package to redirect.
        destination: Folder receiving the content files.
        entry_point: Optional content file that must exist in the package,
            relative to ``content/``.
    """

    def __init__(self, package_id: str, destination: Path, entry_point: Optional[str] = None):
        self.package_id = package_id
        self.destination = Path(destination)
        self.entry_point = entry_point
        self.result: Optional[ExecutableInstallResult] = None

    def find_content_files(self, reader) -> List[str]:
        """Archive members under ``content/``, as paths relative to it."""
        prefix = f"{CONTENT_FOLDER}/"
        return [name[len(prefix):] for name in reader.get_files() if name.startswith(prefix) and name != prefix]

    def on_package_installing(self, identity: PackageIdentity, reader, install_path: Path) -> bool:
        if not identity.matches_id(self.package_id):
            return True

        content_files = self.find_content_files(reader)
        if self.entry_point and self.entry_point not in content_files:
            raise ExtractionFailedError(identity, f"entry point '{self.entry_point}' is missing from the package content")

        result = ExecutableInstallResult(identity=identity, destination=self.destination)
        try:
            for name in content_files:
                relative = PurePosixPath(name)
                if relative.is_absolute() or ".." in relative.parts:
                    raise ExtractionFailedError(identity, f"content file '{name}' escapes the destination")
                target = self.destination.joinpath(*relative.parts)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(reader.read(f"{CONTENT_FOLDER}/{name}"))
                result.files.append(target)

            result.manifest_path = self.destination / f"{identity.id}.pkm.yml"
            result.manifest_path.write_text(reader.manifest.to_yaml(), encoding="utf-8")
        except OSError as e:
            raise ExtractionFailedError(identity, str(e))

        logger.info("Copied %d content file(s) of '%s' to '%s'", len(result.files), identity, self.destination)
        self.result = result
        return False

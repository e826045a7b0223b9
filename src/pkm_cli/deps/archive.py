"""Package archive reading and extraction.

A package archive is a zip file holding ``pkm.yml`` at its root plus the
package files. Extraction happens in a staging directory that is moved into
place only after every file, including the package file itself, has been
written.
"""

import io
import logging
import os
import shutil
import uuid
import zipfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO, List, Optional, Union

from ..models.identity import PackageIdentity
from ..models.package import MANIFEST_FILE_NAME, InstalledPackage, PackageManifest
from .errors import ExtractionFailedError
from .path_resolver import PackagePathResolver

logger = logging.getLogger(__name__)


def _safe_member_path(name: str) -> Optional[PurePosixPath]:
    """Return the relative path for an archive member, or None if it escapes the root."""
    path = PurePosixPath(name.replace("\\", "/"))
    if path.is_absolute() or any(part == ".." for part in path.parts):
        return None
    if not path.parts:
        return None
    return path


class PackageArchiveReader:
    """Reads a package archive held in memory."""

    def __init__(self, data: Union[bytes, BinaryIO]):
        if not isinstance(data, (bytes, bytearray)):
            data = data.read()
        self.data = bytes(data)
        try:
            self._zip = zipfile.ZipFile(io.BytesIO(self.data))
            manifest_text = self._zip.read(MANIFEST_FILE_NAME).decode("utf-8")
        except (zipfile.BadZipFile, KeyError) as e:
            raise ValueError(f"Invalid package archive: {e}")
        self.manifest = PackageManifest.from_yaml(manifest_text)

    @property
    def identity(self) -> PackageIdentity:
        return self.manifest.identity

    def get_files(self) -> List[str]:
        """Relative POSIX paths of the files in the archive."""
        return [info.filename for info in self._zip.infolist() if not info.is_dir()]

    def read(self, name: str) -> bytes:
        return self._zip.read(name)

    def close(self) -> None:
        self._zip.close()


class PackageFolderReader:
    """Reads an extracted package from its install path."""

    def __init__(self, install_path: Path, package_file_path: Optional[Path] = None):
        self.install_path = Path(install_path)
        self.package_file_path = package_file_path
        self.manifest = PackageManifest.read(self.install_path / MANIFEST_FILE_NAME)

    @property
    def identity(self) -> PackageIdentity:
        return self.manifest.identity

    def get_files(self) -> List[str]:
        """Files that belong to the package, as listed by the package file.

        Falls back to every file under the install path when the package
        file is missing or unreadable.
        """
        if self.package_file_path is not None and self.package_file_path.is_file():
            try:
                with zipfile.ZipFile(self.package_file_path) as archive:
                    return [info.filename for info in archive.infolist() if not info.is_dir()]
            except zipfile.BadZipFile:
                logger.warning("Package file '%s' is unreadable; deleting all files", self.package_file_path)
        return [
            p.relative_to(self.install_path).as_posix()
            for p in self.install_path.rglob("*")
            if p.is_file() and p != self.package_file_path
        ]

    def read(self, name: str) -> bytes:
        return (self.install_path / name).read_bytes()

    def close(self) -> None:
        pass


def extract_package(
    reader: PackageArchiveReader,
    path_resolver: PackagePathResolver,
    identity: Optional[PackageIdentity] = None,
) -> InstalledPackage:
    """Extract ``reader`` under the packages root and return the installed record.

    Raises:
        ExtractionFailedError: If any file cannot be written. Nothing is left
            behind at the install path in that case.
    """
    identity = identity or reader.identity
    install_path = path_resolver.get_install_path(identity)
    root = path_resolver.root
    staging = root / f".{identity.directory_name}.{uuid.uuid4().hex[:8]}.partial"

    try:
        root.mkdir(parents=True, exist_ok=True)
        staging.mkdir()
        for name in reader.get_files():
            relative = _safe_member_path(name)
            if relative is None:
                raise ValueError(f"archive member '{name}' escapes the install path")
            target = staging.joinpath(*relative.parts)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(reader.read(name))

        # Package file last: its presence marks the package as installed.
        package_file = staging / path_resolver.get_package_file_name(identity)
        package_file.write_bytes(reader.data)

        if install_path.exists():
            # Leftover from an interrupted extraction; it has no package file.
            shutil.rmtree(install_path)
        os.replace(staging, install_path)
    except (OSError, ValueError) as e:
        shutil.rmtree(staging, ignore_errors=True)
        raise ExtractionFailedError(identity, str(e))

    return InstalledPackage(identity, install_path, install_path / package_file.name)

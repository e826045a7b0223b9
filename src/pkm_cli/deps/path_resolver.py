"""Filesystem layout of the packages root.

Layout:
    <root>/<Id>.<version>/                  install path
    <root>/<Id>.<version>/<Id>.<version>.pkm package file (written last)
    <root>/<Id>.<version>/pkm.yml           package manifest
"""

from pathlib import Path
from typing import Iterator, Optional

from ..models.identity import PackageIdentity
from ..models.package import InstalledPackage

PACKAGE_FILE_EXTENSION = ".pkm"


class PackagePathResolver:
    """Maps package identities to install paths under a packages root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def get_package_directory_name(self, identity: PackageIdentity) -> str:
        return identity.directory_name

    def get_package_file_name(self, identity: PackageIdentity) -> str:
        return f"{identity.directory_name}{PACKAGE_FILE_EXTENSION}"

    def get_install_path(self, identity: PackageIdentity) -> Path:
        """Path the package is (or would be) extracted to."""
        return self.root / self.get_package_directory_name(identity)

    def get_installed_path(self, identity: PackageIdentity) -> Optional[Path]:
        """Return the install path if ``identity`` is installed, otherwise None.

        A package counts as installed once its package file exists. The
        directory lookup ignores the casing of the package id.
        """
        candidate = self.get_install_path(identity)
        if not candidate.is_dir():
            candidate = self._find_directory_ignore_case(self.get_package_directory_name(identity))
            if candidate is None:
                return None

        package_file = self._find_package_file(candidate, identity)
        return candidate if package_file is not None else None

    def get_installed_package(self, identity: PackageIdentity) -> Optional[InstalledPackage]:
        install_path = self.get_installed_path(identity)
        if install_path is None:
            return None
        return InstalledPackage(identity, install_path, self._find_package_file(install_path, identity))

    def iter_install_directories(self) -> Iterator[Path]:
        """Yield candidate package directories under the root, sorted by name."""
        if not self.root.is_dir():
            return
        for child in sorted(self.root.iterdir(), key=lambda p: p.name.lower()):
            if child.is_dir() and not child.name.startswith('.'):
                yield child

    def _find_directory_ignore_case(self, name: str) -> Optional[Path]:
        wanted = name.lower()
        for child in self.iter_install_directories():
            if child.name.lower() == wanted:
                return child
        return None

    def _find_package_file(self, install_path: Path, identity: PackageIdentity) -> Optional[Path]:
        expected = install_path / self.get_package_file_name(identity)
        if expected.is_file():
            return expected
        wanted = expected.name.lower()
        for child in install_path.iterdir():
            if child.is_file() and child.name.lower() == wanted:
                return child
        return None

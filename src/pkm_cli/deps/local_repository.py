"""The packages root viewed as a repository of installed packages."""

import logging
from typing import List, Optional

from ..models.identity import PackageIdentity
from ..models.package import DEFAULT_FRAMEWORK, MANIFEST_FILE_NAME, DependencyInfo, InstalledPackage, PackageManifest
from .path_resolver import PackagePathResolver

logger = logging.getLogger(__name__)


class LocalPackageRepository:
    """Installed packages under a packages root.

    Nothing is cached: every query rescans the filesystem, which is the only
    source of truth for what is installed.
    """

    def __init__(self, path_resolver: PackagePathResolver):
        self.path_resolver = path_resolver

    @property
    def root(self):
        return self.path_resolver.root

    def _read_manifest(self, install_path) -> Optional[PackageManifest]:
        try:
            return PackageManifest.read(install_path / MANIFEST_FILE_NAME)
        except (OSError, ValueError) as e:
            logger.debug("Ignoring '%s': %s", install_path, e)
            return None

    def _scan(self) -> List[tuple]:
        results = []
        for directory in self.path_resolver.iter_install_directories():
            manifest = self._read_manifest(directory)
            if manifest is None:
                continue
            installed = self.path_resolver.get_installed_package(manifest.identity)
            if installed is None or installed.install_path != directory:
                # Interrupted extraction or a directory that does not match its manifest
                continue
            results.append((installed, manifest))
        return results

    def list_installed(self) -> List[InstalledPackage]:
        """Snapshot of every installed package, sorted by identity."""
        return sorted((installed for installed, _ in self._scan()), key=lambda p: p.identity)

    def find_all_versions(self, package_id: str) -> List[PackageIdentity]:
        return sorted(p.identity for p in self.list_installed() if p.identity.matches_id(package_id))

    def is_installed(self, identity: PackageIdentity) -> bool:
        return self.path_resolver.get_installed_path(identity) is not None

    def get_manifest(self, identity: PackageIdentity) -> Optional[PackageManifest]:
        install_path = self.path_resolver.get_installed_path(identity)
        if install_path is None:
            return None
        return self._read_manifest(install_path)

    def resolve_package(
        self, identity: PackageIdentity, framework: str = DEFAULT_FRAMEWORK
    ) -> Optional[DependencyInfo]:
        manifest = self.get_manifest(identity)
        if manifest is None:
            return None
        return manifest.to_dependency_info(framework, source=self)

    def get_dependency_infos(self, framework: str = DEFAULT_FRAMEWORK) -> List[DependencyInfo]:
        """Dependency information for every installed package."""
        return [manifest.to_dependency_info(framework, source=self) for _, manifest in self._scan()]

"""Install and uninstall orchestration for a packages root.

Every operation starts from a fresh filesystem snapshot of the packages
root; nothing about installed packages is cached between calls. Graph
computations (discovery, resolution, closure, safety filtering) finish
before the first file is written or deleted, so fatal errors leave the
packages root untouched.
"""

import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .. import __version__
from ..models.identity import PackageIdentity
from ..models.package import DEFAULT_FRAMEWORK, DependencyInfo, InstalledPackage, PackageMetadata
from ..models.plugin import PackageManagerPlugin
from ..models.version_range import VersionRange
from .archive import PackageArchiveReader, PackageFolderReader, extract_package
from .dependency_graph import DependencyGraph
from .discovery import discover_dependencies
from .errors import (
    DirectoryCleanupError,
    DownloadFailedError,
    ExtractionFailedError,
    InstallFailedError,
    LicenseDeclinedError,
    PackageNotFoundError,
    RepositoryError,
    ResolutionInconsistentError,
    raise_if_cancelled,
)
from .local_repository import LocalPackageRepository
from .lockfile import LockFile, get_lockfile_path
from .path_resolver import PackagePathResolver
from .repository import AggregateRepository, PackageRepository, create_repository
from .resolver import BacktrackingResolver, DependencyBehavior, PackageResolver

logger = logging.getLogger(__name__)

LicenseGate = Callable[[List[PackageMetadata]], bool]
UninstallTarget = Union[str, PackageIdentity]


class PackageManager:
    """Installs, updates, restores and uninstalls packages under a packages root.

    Args:
        local_path: The packages root.
        sources: Package sources in priority order, as repositories or
            source strings (URL or folder path).
        framework: Target framework used to select dependency groups.
        dependency_behavior: Version preference handed to the resolver.
        resolver: Resolver selecting one version per package id.
        license_gate: Called with the metadata of every new package that
            requires license acceptance; returns True to accept.
        plugins: Plugins notified around extraction and deletion, in
            registration order.
    """

    def __init__(
        self,
        local_path: Union[str, Path],
        sources: Sequence[Union[str, PackageRepository]] = (),
        framework: str = DEFAULT_FRAMEWORK,
        dependency_behavior: DependencyBehavior = DependencyBehavior.HIGHEST,
        resolver: Optional[PackageResolver] = None,
        license_gate: Optional[LicenseGate] = None,
        plugins: Optional[Iterable[PackageManagerPlugin]] = None,
    ):
        self.path_resolver = PackagePathResolver(Path(local_path))
        self.local_repository = LocalPackageRepository(self.path_resolver)
        self.repositories: List[PackageRepository] = [
            s if isinstance(s, PackageRepository) else create_repository(s) for s in sources
        ]
        self.framework = framework
        self.dependency_behavior = dependency_behavior
        self.resolver = resolver or BacktrackingResolver()
        self.license_gate = license_gate
        self.plugins: List[PackageManagerPlugin] = list(plugins or [])
        self._install_locks: Dict[PackageIdentity, Tuple[threading.Lock, int]] = {}
        self._install_locks_guard = threading.Lock()

    @property
    def local_path(self) -> Path:
        return self.path_resolver.root

    @property
    def lockfile_path(self) -> Path:
        return get_lockfile_path(self.local_path)

    def get_installed_packages(self) -> List[InstalledPackage]:
        """Snapshot of installed packages, rescanned from the filesystem."""
        return self.local_repository.list_installed()

    def get_dependency_graph(self) -> DependencyGraph:
        installed = [p.identity for p in self.get_installed_packages()]
        return DependencyGraph.build(installed, self.local_repository.get_dependency_infos(self.framework))

    def accept_license_agreement(self, packages: List[PackageMetadata]) -> bool:
        """Ask the license gate; without one, licenses are accepted."""
        if self.license_gate is None:
            return True
        return bool(self.license_gate(packages))

    # Install

    def install_package(
        self,
        package_id: str,
        version_range: Union[None, str, VersionRange] = None,
        ignore_dependencies: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> InstalledPackage:
        """Install ``package_id`` and its dependencies.

        Returns the already-installed package without touching any package
        source when a version satisfying ``version_range`` is present.

        Raises:
            PackageNotFoundError: A package in the dependency walk is unavailable.
            UnsatisfiableConstraintsError: No consistent version set exists.
            LicenseDeclinedError: The license gate declined; nothing was extracted.
            InstallFailedError: Some packages failed to download or extract.
                Packages that succeeded stay installed.
            OperationCancelledError: ``cancel_event`` was set.
        """
        if not isinstance(version_range, VersionRange):
            version_range = VersionRange.parse(version_range)

        existing = self.find_installed(package_id, version_range)
        if existing is not None:
            logger.info("'%s' is already installed", existing.identity)
            return existing

        if version_range.is_unbounded:
            raise_if_cancelled(cancel_event, "Installation")
            version_range = VersionRange.exact(self._find_latest(package_id).version)

        available: Dict[PackageIdentity, DependencyInfo] = {
            info.identity: info for info in self.local_repository.get_dependency_infos(self.framework)
        }
        discover_dependencies(
            package_id,
            version_range,
            self.repositories,
            available,
            framework=self.framework,
            ignore_dependencies=ignore_dependencies,
            cancel_event=cancel_event,
        )

        behavior = DependencyBehavior.IGNORE if ignore_dependencies else self.dependency_behavior
        selected = self.resolver.resolve(list(available.values()), {package_id: version_range}, behavior)
        target = next((info for info in selected if info.identity.matches_id(package_id)), None)
        if target is None:
            logger.error("Resolver did not select '%s'", package_id)
            raise ResolutionInconsistentError(package_id)

        new_packages = [info for info in selected if not self.local_repository.is_installed(info.identity)]
        license_packages: List[PackageMetadata] = []
        packages_to_remove: List[PackageIdentity] = []
        for info in new_packages:
            raise_if_cancelled(cancel_event, "Installation")
            metadata = self._get_source(info).get_metadata(info.identity)
            if metadata is not None and metadata.require_license_acceptance:
                license_packages.append(metadata)
            for existing_version in self.local_repository.find_all_versions(info.id):
                if existing_version not in packages_to_remove:
                    packages_to_remove.append(existing_version)

        if license_packages and not self.accept_license_agreement(license_packages):
            raise_if_cancelled(cancel_event, "Installation")
            error = LicenseDeclinedError(target.identity, [m.identity for m in license_packages])
            logger.error("%s", error)
            raise error

        results: Dict[PackageIdentity, InstalledPackage] = {}
        failures: Dict[PackageIdentity, Exception] = {}
        sources: Dict[PackageIdentity, str] = {}
        vetoed: List[PackageIdentity] = []
        for info in selected:
            try:
                installed = self._install_one(info, cancel_event)
            except (DownloadFailedError, ExtractionFailedError, RepositoryError) as e:
                logger.error("%s", e)
                failures[info.identity] = e
                continue
            if installed is None:
                vetoed.append(info.identity)
                continue
            results[info.identity] = installed
            if info in new_packages:
                sources[info.identity] = self._get_source(info).name

        if failures:
            self._write_lockfile(sources=sources)
            raise InstallFailedError(target.identity, failures)

        # Old versions go only once their replacement is actually on disk
        selected_identities = {info.identity for info in selected}
        packages_to_remove = [
            p for p in packages_to_remove
            if p not in selected_identities and not any(p.matches_id(v.id) for v in vetoed)
        ]
        removed: List[PackageIdentity] = []
        if packages_to_remove:
            removed = self._remove_replaced_packages(packages_to_remove, cancel_event)

        self._write_lockfile(requested=[target.identity], removed=removed, replaced=packages_to_remove, sources=sources)

        if target.identity in results:
            return results[target.identity]
        # Vetoed by a plugin: nothing was extracted, report where it would live
        install_path = self.path_resolver.get_install_path(target.identity)
        return InstalledPackage(
            target.identity,
            install_path,
            install_path / self.path_resolver.get_package_file_name(target.identity),
        )

    def update_package(self, package_id: str, cancel_event: Optional[threading.Event] = None) -> InstalledPackage:
        """Install the highest version of ``package_id`` offered by any source.

        Older installed versions are replaced by the install pipeline.
        """
        raise_if_cancelled(cancel_event, "Update")
        latest = self._find_latest(package_id)

        installed_versions = self.local_repository.find_all_versions(package_id)
        if installed_versions and installed_versions[-1].version >= latest.version:
            logger.info("'%s' is up to date", installed_versions[-1])
            return self.path_resolver.get_installed_package(installed_versions[-1])

        logger.info("Updating '%s' to %s", package_id, latest.version)
        return self.install_package(package_id, VersionRange.exact(latest.version), cancel_event=cancel_event)

    def restore_packages(self, cancel_event: Optional[threading.Event] = None) -> List[InstalledPackage]:
        """Reinstall requested packages recorded in the lock file but missing on disk."""
        lock = LockFile.read(self.lockfile_path)
        if lock is None:
            logger.info("No lock file at '%s'", self.lockfile_path)
            return []

        restored = []
        for identity in lock.get_requested():
            if self.local_repository.is_installed(identity):
                continue
            logger.info("Restoring '%s'", identity)
            restored.append(
                self.install_package(identity.id, VersionRange.exact(identity.version), cancel_event=cancel_event)
            )
        return restored

    def find_installed(self, package_id: str, version_range: VersionRange) -> Optional[InstalledPackage]:
        matches = [
            p for p in self.local_repository.find_all_versions(package_id) if version_range.satisfies(p.version)
        ]
        if not matches:
            return None
        return self.path_resolver.get_installed_package(matches[-1])

    def _find_latest(self, package_id: str) -> DependencyInfo:
        """Highest version of ``package_id`` offered by any source."""
        candidates = AggregateRepository(self.repositories).resolve_packages(package_id, self.framework)
        if not candidates:
            logger.error("No package source has '%s'", package_id)
            raise PackageNotFoundError(package_id)
        return max(candidates, key=lambda info: info.version)

    def _get_source(self, info: DependencyInfo) -> PackageRepository:
        if isinstance(info.source, PackageRepository):
            return info.source
        return AggregateRepository(self.repositories)

    @contextmanager
    def _install_lock(self, identity: PackageIdentity):
        """Hold the lock for ``identity``; the lock is dropped once nobody waits on it."""
        with self._install_locks_guard:
            lock, users = self._install_locks.get(identity, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._install_locks[identity] = (lock, users + 1)
        try:
            with lock:
                yield lock
        finally:
            with self._install_locks_guard:
                lock, users = self._install_locks[identity]
                if users == 1:
                    del self._install_locks[identity]
                else:
                    self._install_locks[identity] = (lock, users - 1)

    def _install_one(self, info: DependencyInfo, cancel_event) -> Optional[InstalledPackage]:
        """Download and extract one package; None when a plugin vetoed it."""
        identity = info.identity
        with self._install_lock(identity):
            installed = self.path_resolver.get_installed_package(identity)
            if installed is not None:
                return installed

            raise_if_cancelled(cancel_event, "Download")
            stream = self._get_source(info).download(identity)
            try:
                reader = PackageArchiveReader(stream)
            except ValueError as e:
                raise ExtractionFailedError(identity, str(e))
            finally:
                stream.close()

            try:
                if reader.identity != identity:
                    raise ExtractionFailedError(identity, f"archive contains '{reader.identity}'")

                install_path = self.path_resolver.get_install_path(identity)
                for plugin in self.plugins:
                    if not plugin.on_package_installing(identity, reader, install_path):
                        logger.warning("%s declined extraction of '%s'", type(plugin).__name__, identity)
                        return None

                raise_if_cancelled(cancel_event, "Extraction")
                installed = extract_package(reader, self.path_resolver, identity)
                logger.info("Installed '%s'", identity)

                for plugin in self.plugins:
                    plugin.on_package_installed(identity, reader, installed.install_path)
                return installed
            finally:
                reader.close()

    def _remove_replaced_packages(self, packages: List[PackageIdentity], cancel_event) -> List[PackageIdentity]:
        graph = self.get_dependency_graph()
        packages = [p for p in packages if p in graph.installed]
        closure = graph.get_packages_to_uninstall(packages, remove_dependencies=True)
        plan = graph.keep_active_dependencies(closure, packages, force_remove_targets=True)
        return self._delete_packages(plan, cancel_event)

    # Uninstall

    def plan_uninstall(
        self, packages: Union[UninstallTarget, Iterable[UninstallTarget]], remove_dependencies: bool = False
    ) -> List[PackageIdentity]:
        """Packages an uninstall would delete, in deletion order.

        Raises:
            PackageNotFoundError: A target is not installed.
            PackageInUseError: A target is still needed by a package that
                would not be removed.
        """
        graph = self.get_dependency_graph()
        targets = self._resolve_uninstall_targets(packages, graph.installed)
        closure = graph.get_packages_to_uninstall(targets, remove_dependencies)
        return graph.keep_active_dependencies(closure, targets, force_remove_targets=False)

    def uninstall_package(
        self,
        packages: Union[UninstallTarget, Iterable[UninstallTarget]],
        remove_dependencies: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> Set[PackageIdentity]:
        """Uninstall packages, keeping anything still needed by other packages.

        A bare package id selects every installed version of it.

        Returns:
            The identities that were removed.
        """
        plan = self.plan_uninstall(packages, remove_dependencies)
        removed = self._delete_packages(plan, cancel_event)
        self._write_lockfile(removed=removed)
        return set(removed)

    def _resolve_uninstall_targets(
        self, packages: Union[UninstallTarget, Iterable[UninstallTarget]], installed: Set[PackageIdentity]
    ) -> List[PackageIdentity]:
        if isinstance(packages, (str, PackageIdentity)):
            packages = [packages]

        targets: List[PackageIdentity] = []
        for package in packages:
            if isinstance(package, str):
                try:
                    package = PackageIdentity.parse(package)
                except ValueError:
                    matches = sorted(p for p in installed if p.matches_id(package))
                    if not matches:
                        logger.error("The package '%s' is not installed", package)
                        raise PackageNotFoundError(package)
                    targets.extend(m for m in matches if m not in targets)
                    continue
            if package not in installed:
                logger.error("The package '%s' is not installed", package)
                raise PackageNotFoundError(str(package))
            if package not in targets:
                targets.append(package)
        return targets

    def _delete_packages(self, packages: Iterable[PackageIdentity], cancel_event=None) -> List[PackageIdentity]:
        removed = []
        for identity in packages:
            raise_if_cancelled(cancel_event, "Uninstall")
            installed = self.path_resolver.get_installed_package(identity)
            if installed is None:
                logger.debug("'%s' is already gone", identity)
                continue
            if self._delete_package(installed):
                removed.append(identity)
        return removed

    def _delete_package(self, package: InstalledPackage) -> bool:
        identity, install_path = package.identity, package.install_path
        try:
            reader = PackageFolderReader(install_path, package.package_file_path)
        except (OSError, ValueError) as e:
            logger.warning("Unable to read '%s': %s", install_path, e)
            reader = None

        for plugin in self.plugins:
            if not plugin.on_package_uninstalling(identity, reader, install_path):
                logger.warning("%s declined uninstall of '%s'; removing anyway", type(plugin).__name__, identity)
                continue

        if reader is not None:
            files = reader.get_files()
        else:
            files = [
                p.relative_to(install_path).as_posix()
                for p in install_path.rglob("*")
                if p.is_file() and p != package.package_file_path
            ]
        for name in files:
            try:
                (install_path / name).unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Unable to delete '%s': %s", install_path / name, e)

        self._delete_empty_directories(install_path)

        try:
            package.package_file_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Unable to delete package file '%s': %s", package.package_file_path, e)
            return False

        try:
            install_path.rmdir()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("%s", DirectoryCleanupError(install_path, str(e)))

        for plugin in self.plugins:
            plugin.on_package_uninstalled(identity, None, install_path)
        logger.info("Removed '%s'", identity)
        return True

    @staticmethod
    def _delete_empty_directories(root: Path) -> None:
        """Remove empty directories below ``root``, deepest first."""
        for directory, _, _ in sorted(os.walk(root), key=lambda entry: entry[0].count(os.sep), reverse=True):
            if Path(directory) == root:
                continue
            try:
                os.rmdir(directory)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("%s", DirectoryCleanupError(directory, str(e)))

    # Lock file

    def _write_lockfile(
        self,
        requested: Iterable[PackageIdentity] = (),
        removed: Iterable[PackageIdentity] = (),
        replaced: Iterable[PackageIdentity] = (),
        sources: Optional[Dict[PackageIdentity, str]] = None,
    ) -> None:
        """Rewrite the lock file from a fresh scan.

        Requested packages missing from disk stay recorded so ``restore`` can
        bring them back, unless this operation removed them. A replaced
        requested package passes the flag on to the version replacing it.
        The file is deleted once nothing is left to record.
        """
        path = self.lockfile_path
        previous = LockFile.read(path) or LockFile()
        graph = self.get_dependency_graph()
        installed = sorted(graph.installed)
        removed_set = set(removed)
        replaced_set = set(replaced)
        previous_requested = previous.get_requested()

        requested_set = set(requested) | {p for p in previous_requested if p in graph.installed}
        carried_ids = {p.id.lower() for p in previous_requested if p in replaced_set}
        requested_set |= {p for p in installed if p.id.lower() in carried_ids}

        all_sources = {p.identity: p.source for p in previous.get_all_packages() if p.source}
        all_sources.update(sources or {})

        lock = LockFile.from_installed_packages(
            installed, graph, requested=requested_set, sources=all_sources, pkm_version=__version__
        )
        for identity in previous_requested:
            if identity not in graph.installed and identity not in removed_set:
                lock.add_package(previous.get_package(identity))

        try:
            if lock.packages:
                lock.write(path)
            elif path.exists():
                path.unlink()
        except OSError as e:
            logger.warning("Unable to write lock file '%s': %s", path, e)

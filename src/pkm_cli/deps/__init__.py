"""Dependency discovery, resolution, install and uninstall for pkm."""

from .errors import (
    PackageManagerError, PackageNotFoundError, UnsatisfiableConstraintsError,
    LicenseDeclinedError, PackageInUseError, RepositoryError, DownloadFailedError,
    ExtractionFailedError, InstallFailedError, ResolutionInconsistentError,
    DirectoryCleanupError, OperationCancelledError
)
from .path_resolver import PackagePathResolver
from .repository import (
    PackageRepository, FolderRepository, HttpRepository, AggregateRepository, create_repository
)
from .local_repository import LocalPackageRepository
from .discovery import discover_dependencies
from .resolver import DependencyBehavior, PackageResolver, BacktrackingResolver
from .dependency_graph import DependencyGraph
from .lockfile import LockFile, LockedPackage, get_lockfile_path
from .package_manager import PackageManager

__all__ = [
    'PackageManagerError',
    'PackageNotFoundError',
    'UnsatisfiableConstraintsError',
    'LicenseDeclinedError',
    'PackageInUseError',
    'RepositoryError',
    'DownloadFailedError',
    'ExtractionFailedError',
    'InstallFailedError',
    'ResolutionInconsistentError',
    'DirectoryCleanupError',
    'OperationCancelledError',
    'PackagePathResolver',
    'PackageRepository',
    'FolderRepository',
    'HttpRepository',
    'AggregateRepository',
    'create_repository',
    'LocalPackageRepository',
    'discover_dependencies',
    'DependencyBehavior',
    'PackageResolver',
    'BacktrackingResolver',
    'DependencyGraph',
    'LockFile',
    'LockedPackage',
    'get_lockfile_path',
    'PackageManager',
]

"""Data models for pkm packages."""

from .identity import PackageIdentity, parse_version
from .version_range import FloatBehavior, VersionRange
from .package import (
    DependencyInfo,
    InstalledPackage,
    PackageDependency,
    PackageManifest,
    PackageMetadata,
)
from .plugin import PackageManagerPlugin

__all__ = [
    'PackageIdentity',
    'parse_version',
    'FloatBehavior',
    'VersionRange',
    'DependencyInfo',
    'InstalledPackage',
    'PackageDependency',
    'PackageManifest',
    'PackageMetadata',
    'PackageManagerPlugin',
]

"""Dependency discovery across package repositories."""

import logging
from typing import Dict, Optional, Sequence

from ..models.identity import PackageIdentity
from ..models.package import DEFAULT_FRAMEWORK, DependencyInfo
from ..models.version_range import VersionRange
from .errors import PackageNotFoundError, raise_if_cancelled
from .repository import PackageRepository

logger = logging.getLogger(__name__)


def find_dependency_info(
    package_id: str,
    version_range: VersionRange,
    framework: str,
    repositories: Sequence[PackageRepository],
    cancel_event=None,
) -> Optional[DependencyInfo]:
    """Return the lowest satisfying version from the first repository that has one.

    Repositories are tried in priority order; a lower version in a later
    repository never beats a match in an earlier one.
    """
    for repository in repositories:
        raise_if_cancelled(cancel_event, "Dependency discovery")
        info = repository.resolve_dependency_info(package_id, version_range, framework)
        if info is not None:
            logger.debug("'%s %s' resolved to '%s' from '%s'", package_id, version_range, info.identity, repository.name)
            return info
    return None


def discover_dependencies(
    package_id: str,
    version_range: Optional[VersionRange],
    repositories: Sequence[PackageRepository],
    available: Dict[PackageIdentity, DependencyInfo],
    framework: str = DEFAULT_FRAMEWORK,
    ignore_dependencies: bool = False,
    cancel_event=None,
) -> Dict[PackageIdentity, DependencyInfo]:
    """Collect ``package_id`` and its transitive dependencies into ``available``.

    ``available`` is an accumulator shared by the caller: identities already
    present are neither re-resolved nor expanded again, which is what stops
    the walk on diamonds and cycles. Existing entries are never overwritten.

    Args:
        package_id: Root package id.
        version_range: Range the root must satisfy; None means any version.
        repositories: Package sources in priority order.
        available: Accumulator mapping identity to dependency info.
        framework: Target framework used to pick dependency groups.
        ignore_dependencies: Only resolve the root package.
        cancel_event: Optional threading.Event checked before each query.

    Returns:
        The ``available`` mapping.

    Raises:
        PackageNotFoundError: If no repository has a version of some package
            in the walk that satisfies its range. Entries added before the
            failure are left in ``available``.
    """
    pending = [(package_id, version_range or VersionRange.ALL)]
    while pending:
        current_id, current_range = pending.pop()
        info = find_dependency_info(current_id, current_range, framework, repositories, cancel_event)
        if info is None:
            logger.error("No package source has '%s %s'", current_id, current_range)
            raise PackageNotFoundError(current_id, current_range)

        if info.identity in available:
            continue
        available[info.identity] = info
        logger.info("Discovered '%s'", info.identity)

        if ignore_dependencies:
            continue
        # Reversed so the first declared dependency is walked first
        for dependency in reversed(info.dependencies):
            pending.append((dependency.id, dependency.version_range))

    return available

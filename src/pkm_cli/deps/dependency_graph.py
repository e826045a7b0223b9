"""Dependency graph over installed packages.

The graph is rebuilt from a filesystem snapshot for every operation and is
never shared between operations. It answers three questions for uninstall:
who depends on a package (directly or transitively), which packages a
removal would reach when dependencies are removed too, and which of those
must stay because something outside the removal set still needs them.
"""

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Set

from ..models.identity import PackageIdentity
from ..models.package import DependencyInfo
from .errors import PackageInUseError

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Forward and reverse dependency edges between installed packages.

    ``dependencies[A]`` holds every installed ``B`` whose id matches one of
    A's declared dependency ids and whose version satisfies the declared
    range; ``dependents`` is the exact inverse. Dependencies on packages
    that are not installed produce no edge.
    """

    def __init__(self, installed: Iterable[PackageIdentity]):
        self.installed: Set[PackageIdentity] = set(installed)
        self.dependents: Dict[PackageIdentity, Set[PackageIdentity]] = {p: set() for p in self.installed}
        self.dependencies: Dict[PackageIdentity, Set[PackageIdentity]] = {p: set() for p in self.installed}

    @classmethod
    def build(cls, installed: Iterable[PackageIdentity], infos: Iterable[DependencyInfo]) -> "DependencyGraph":
        """Build the graph from installed identities and their dependency info.

        Infos for identities that are not installed are ignored.
        """
        graph = cls(installed)
        by_id: Dict[str, List[PackageIdentity]] = {}
        for identity in graph.installed:
            by_id.setdefault(identity.id.lower(), []).append(identity)

        for info in infos:
            package = info.identity
            if package not in graph.installed:
                continue
            for dependency in info.dependencies:
                for candidate in by_id.get(dependency.id.lower(), ()):
                    if candidate == package or not dependency.version_range.satisfies(candidate.version):
                        continue
                    graph.dependencies[package].add(candidate)
                    graph.dependents[candidate].add(package)
        return graph

    def get_dependents(self, package: PackageIdentity) -> Set[PackageIdentity]:
        return set(self.dependents.get(package, ()))

    def get_dependencies(self, package: PackageIdentity) -> Set[PackageIdentity]:
        return set(self.dependencies.get(package, ()))

    def get_transitive_dependents(
        self,
        package: PackageIdentity,
        memo: Optional[Dict[PackageIdentity, Set[PackageIdentity]]] = None,
    ) -> Set[PackageIdentity]:
        """Every package that depends on ``package`` directly or indirectly.

        ``memo`` caches complete results across calls made for one operation.
        """
        if memo is not None and package in memo:
            return memo[package]

        result: Set[PackageIdentity] = set()
        pending = list(self.dependents.get(package, ()))
        while pending:
            current = pending.pop()
            if current in result:
                continue
            result.add(current)
            if memo is not None and current in memo:
                result |= memo[current]
                continue
            pending.extend(d for d in self.dependents.get(current, ()) if d not in result)

        if memo is not None:
            memo[package] = result
        return result

    def get_packages_to_uninstall(
        self, targets: Iterable[PackageIdentity], remove_dependencies: bool
    ) -> List[PackageIdentity]:
        """Ordered removal candidates reachable from ``targets``.

        Breadth-first over dependency edges when ``remove_dependencies`` is
        set. A dependency reached again after it was recorded moves to the
        end of the list, after everything that depends on it.
        """
        queue = deque(targets)
        result: List[PackageIdentity] = []
        recorded: Set[PackageIdentity] = set()

        while queue:
            current = queue.popleft()
            if current in recorded:
                result.remove(current)
                result.append(current)
                continue
            result.append(current)
            recorded.add(current)

            if not remove_dependencies:
                continue
            for dependency in sorted(self.dependencies.get(current, ())):
                if dependency in recorded:
                    result.remove(dependency)
                    result.append(dependency)
                elif dependency not in queue:
                    queue.append(dependency)

        return result

    def keep_active_dependencies(
        self,
        packages_to_remove: Iterable[PackageIdentity],
        targets: Iterable[PackageIdentity],
        force_remove_targets: bool = False,
    ) -> List[PackageIdentity]:
        """Drop the removal candidates that something outside the set still needs.

        Targets are removed unconditionally when ``force_remove_targets`` is
        set. Otherwise a target with any transitive dependent outside the
        removal set is an error, so a target is never silently kept.
        Non-target candidates are silently kept when any of their transitive
        dependents is outside the removal set.

        Raises:
            PackageInUseError: If a non-forced target is still depended on.
        """
        candidates = list(packages_to_remove)
        removal_set = set(candidates)
        target_set = set(targets)
        memo: Dict[PackageIdentity, Set[PackageIdentity]] = {}

        for package in candidates:
            if package in target_set and not force_remove_targets:
                blocking = self.get_transitive_dependents(package, memo) - removal_set
                if blocking:
                    error = PackageInUseError(package, blocking)
                    logger.error("%s", error)
                    raise error

        result = []
        for package in candidates:
            if package in target_set:
                result.append(package)
                continue
            needed_by = self.get_transitive_dependents(package, memo) - removal_set
            if needed_by:
                logger.info(
                    "Keeping '%s' because '%s' still depend on it",
                    package,
                    ", ".join(str(p) for p in sorted(needed_by)),
                )
                continue
            result.append(package)
        return result

"""Selection of one consistent version per package id.

The package manager treats the resolver as a pluggable collaborator: it
hands over every candidate it knows about (discovered from repositories and
already installed) plus the target ids, and receives the ordered list of
identities to ensure present.
"""

import heapq
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..models.identity import PackageIdentity
from ..models.package import DependencyInfo
from ..models.version_range import VersionRange
from .errors import UnsatisfiableConstraintsError

logger = logging.getLogger(__name__)


class DependencyBehavior(Enum):
    """Which satisfying version to prefer for each package id."""

    LOWEST = "lowest"
    HIGHEST = "highest"
    IGNORE = "ignore"

    @classmethod
    def parse(cls, value: str) -> "DependencyBehavior":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(b.value for b in cls)
            raise ValueError(f"Invalid dependency behavior '{value}'. Expected one of: {choices}")


class PackageResolver(ABC):
    @abstractmethod
    def resolve(
        self,
        available: Iterable[DependencyInfo],
        targets: Mapping[str, Optional[VersionRange]],
        behavior: DependencyBehavior,
    ) -> List[DependencyInfo]:
        """Select the packages to ensure present, dependencies before dependents.

        Equal inputs must give equal outputs.

        Raises:
            UnsatisfiableConstraintsError: If no consistent selection exists.
        """


Constraints = Dict[str, Tuple[VersionRange, ...]]


class BacktrackingResolver(PackageResolver):
    """Depth-first search over candidate versions with backtracking.

    Ids are decided in alphabetical order (case-insensitive). For each id the
    candidates satisfying every range collected so far are tried lowest-first
    or highest-first depending on the behavior; a candidate whose own
    dependencies contradict an earlier decision is skipped, and when an id
    runs out of candidates the previous decision is revisited.
    """

    def resolve(
        self,
        available: Iterable[DependencyInfo],
        targets: Mapping[str, Optional[VersionRange]],
        behavior: DependencyBehavior,
    ) -> List[DependencyInfo]:
        candidates = self._group_candidates(available)
        constraints: Constraints = {
            package_id.lower(): (version_range or VersionRange.ALL,) for package_id, version_range in targets.items()
        }

        if behavior is DependencyBehavior.IGNORE:
            selection = {}
            for key, ranges in constraints.items():
                options = self._options(candidates.get(key, []), ranges, DependencyBehavior.HIGHEST)
                if not options:
                    raise UnsatisfiableConstraintsError([key], f"No candidate satisfies {ranges[0]}.")
                selection[key] = options[0]
        else:
            selection = self._search({}, constraints, candidates, behavior)
            if selection is None:
                logger.error("Unable to resolve %s", ", ".join(sorted(targets)))
                raise UnsatisfiableConstraintsError(targets.keys())

        ordered = self._topological_order(selection)
        logger.debug("Resolved: %s", ", ".join(str(info.identity) for info in ordered))
        return ordered

    @staticmethod
    def _group_candidates(available: Iterable[DependencyInfo]) -> Dict[str, List[DependencyInfo]]:
        grouped: Dict[str, Dict[PackageIdentity, DependencyInfo]] = {}
        for info in available:
            grouped.setdefault(info.id.lower(), {}).setdefault(info.identity, info)
        return {key: sorted(infos.values(), key=lambda i: i.version) for key, infos in grouped.items()}

    @staticmethod
    def _options(
        candidates: List[DependencyInfo], ranges: Tuple[VersionRange, ...], behavior: DependencyBehavior
    ) -> List[DependencyInfo]:
        options = [c for c in candidates if all(r.satisfies(c.version) for r in ranges)]
        if behavior is DependencyBehavior.HIGHEST:
            options.reverse()
        return options

    def _search(
        self,
        selection: Dict[str, DependencyInfo],
        constraints: Constraints,
        candidates: Dict[str, List[DependencyInfo]],
        behavior: DependencyBehavior,
    ) -> Optional[Dict[str, DependencyInfo]]:
        undecided = sorted(key for key in constraints if key not in selection)
        if not undecided:
            return selection

        key = undecided[0]
        for option in self._options(candidates.get(key, []), constraints[key], behavior):
            extended = dict(constraints)
            consistent = True
            for dependency in option.dependencies:
                dep_key = dependency.id.lower()
                chosen = selection.get(dep_key)
                if chosen is not None and not dependency.version_range.satisfies(chosen.version):
                    consistent = False
                    break
                extended[dep_key] = extended.get(dep_key, ()) + (dependency.version_range,)
            if not consistent:
                continue

            result = self._search({**selection, key: option}, extended, candidates, behavior)
            if result is not None:
                return result
        return None

    @staticmethod
    def _topological_order(selection: Dict[str, DependencyInfo]) -> List[DependencyInfo]:
        """Dependencies first; among ready packages the lowest id goes first."""
        remaining: Dict[str, set] = {key: set() for key in selection}
        dependents: Dict[str, set] = {key: set() for key in selection}
        for key, info in selection.items():
            for dependency in info.dependencies:
                dep_key = dependency.id.lower()
                if dep_key in selection and dep_key != key:
                    remaining[key].add(dep_key)
                    dependents[dep_key].add(key)

        ready = [key for key, deps in remaining.items() if not deps]
        heapq.heapify(ready)
        ordered = []
        while ready:
            key = heapq.heappop(ready)
            ordered.append(selection[key])
            for dependent in dependents[key]:
                remaining[dependent].discard(key)
                if not remaining[dependent] and selection[dependent] not in ordered:
                    heapq.heappush(ready, dependent)

        # Cycles: whatever is left goes last, by id
        placed = {info.identity for info in ordered}
        ordered.extend(selection[key] for key in sorted(selection) if selection[key].identity not in placed)
        return ordered

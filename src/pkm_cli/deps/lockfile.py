"""Lock file recording what is installed under a packages root.

The lock file is rewritten from a fresh filesystem scan after every install
and uninstall. It remembers which packages were requested explicitly (as
opposed to pulled in as dependencies) so ``pkm restore`` can bring a packages
root back. Graph construction never reads it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from ..models.identity import PackageIdentity

LOCKFILE_NAME = "pkm.lock"


@dataclass
class LockedPackage:
    """An installed package with its resolved dependency edges."""

    id: str
    version: str
    requested: bool = False
    source: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)

    @property
    def identity(self) -> PackageIdentity:
        return PackageIdentity(self.id, self.version)

    def get_unique_key(self) -> str:
        """Returns unique key for this package."""
        return f"{self.id.lower()}@{self.version}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for YAML output."""
        result: Dict[str, Any] = {"id": self.id, "version": self.version}
        if self.requested:
            result["requested"] = True
        if self.source:
            result["source"] = self.source
        if self.dependencies:
            result["dependencies"] = list(self.dependencies)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LockedPackage":
        return cls(
            id=str(data["id"]),
            version=str(data["version"]),
            requested=bool(data.get("requested", False)),
            source=data.get("source"),
            dependencies=[str(d) for d in data.get("dependencies") or []],
        )


@dataclass
class LockFile:
    """pkm lock file for a packages root."""

    lockfile_version: str = "1"
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    pkm_version: Optional[str] = None
    packages: Dict[str, LockedPackage] = field(default_factory=dict)

    def add_package(self, package: LockedPackage) -> None:
        self.packages[package.get_unique_key()] = package

    def get_package(self, identity: PackageIdentity) -> Optional[LockedPackage]:
        return self.packages.get(f"{identity.id.lower()}@{identity.version}")

    def has_package(self, identity: PackageIdentity) -> bool:
        return self.get_package(identity) is not None

    def get_all_packages(self) -> List[LockedPackage]:
        """Get all packages sorted by id then version."""
        return sorted(self.packages.values(), key=lambda p: p.identity)

    def get_requested(self) -> List[PackageIdentity]:
        """Identities that were installed on explicit request."""
        return [p.identity for p in self.get_all_packages() if p.requested]

    def to_yaml(self) -> str:
        """Serialize to YAML string."""
        data: Dict[str, Any] = {
            "lockfile_version": self.lockfile_version,
            "generated_at": self.generated_at,
        }
        if self.pkm_version:
            data["pkm_version"] = self.pkm_version
        data["packages"] = [p.to_dict() for p in self.get_all_packages()]
        return yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "LockFile":
        """Deserialize from YAML string."""
        data = yaml.safe_load(yaml_str)
        if not data or not isinstance(data, dict):
            return cls()
        lock = cls(
            lockfile_version=str(data.get("lockfile_version", "1")),
            generated_at=data.get("generated_at", ""),
            pkm_version=data.get("pkm_version"),
        )
        for package_data in data.get("packages") or []:
            lock.add_package(LockedPackage.from_dict(package_data))
        return lock

    def write(self, path: Path) -> None:
        """Write lock file to disk."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_yaml(), encoding="utf-8")

    @classmethod
    def read(cls, path: Path) -> Optional["LockFile"]:
        """Read lock file from disk. Returns None if not exists or corrupt."""
        if not path.exists():
            return None
        try:
            return cls.from_yaml(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, ValueError, KeyError, TypeError):
            return None

    @classmethod
    def load_or_create(cls, path: Path) -> "LockFile":
        """Load existing lock file or create a new one."""
        return cls.read(path) or cls()

    @classmethod
    def from_installed_packages(
        cls,
        installed: Iterable[PackageIdentity],
        dependency_graph,
        requested: Iterable[PackageIdentity] = (),
        sources: Optional[Dict[PackageIdentity, str]] = None,
        pkm_version: Optional[str] = None,
    ) -> "LockFile":
        """Create a lock file from an installed snapshot.

        Args:
            installed: Identities currently installed.
            dependency_graph: DependencyGraph built over ``installed``.
            requested: Identities installed on explicit request.
            sources: Optional name of the source each identity came from.
            pkm_version: Version of the tool writing the file.
        """
        requested_set = set(requested)
        sources = sources or {}
        lock = cls(pkm_version=pkm_version)
        for identity in installed:
            lock.add_package(
                LockedPackage(
                    id=identity.id,
                    version=str(identity.version),
                    requested=identity in requested_set,
                    source=sources.get(identity),
                    dependencies=[str(d) for d in sorted(dependency_graph.get_dependencies(identity))],
                )
            )
        return lock


def get_lockfile_path(packages_root: Path) -> Path:
    """Get the path to the lock file for a packages root."""
    return Path(packages_root) / LOCKFILE_NAME

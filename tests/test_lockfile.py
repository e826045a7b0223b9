"""Tests for the pkm lock file module."""

from unittest.mock import Mock
import yaml

from pkm_cli.deps.lockfile import LockedPackage, LockFile, get_lockfile_path
from pkm_cli.models.identity import PackageIdentity


class TestLockedPackage:
    """Tests for LockedPackage dataclass."""

    def test_get_unique_key_is_case_insensitive(self):
        assert LockedPackage(id="Acme.Core", version="1.0.0").get_unique_key() == "acme.core@1.0.0"

    def test_to_dict_minimal(self):
        package = LockedPackage(id="Acme.Core", version="1.0.0")
        assert package.to_dict() == {"id": "Acme.Core", "version": "1.0.0"}

    def test_to_dict_full(self):
        package = LockedPackage(
            id="Acme.App", version="2.0.0", requested=True, source="https://feed", dependencies=["Acme.Core 1.0.0"]
        )
        assert package.to_dict() == {
            "id": "Acme.App",
            "version": "2.0.0",
            "requested": True,
            "source": "https://feed",
            "dependencies": ["Acme.Core 1.0.0"],
        }

    def test_from_dict(self):
        package = LockedPackage.from_dict({"id": "Acme.Core", "version": "1.2", "requested": True})
        assert package.id == "Acme.Core"
        assert package.requested is True
        assert package.identity == PackageIdentity("acme.core", "1.2.0")


class TestLockFile:
    def test_add_and_get_package(self):
        lock = LockFile()
        lock.add_package(LockedPackage(id="Acme.Core", version="1.0.0"))
        assert lock.has_package(PackageIdentity("acme.core", "1.0.0"))
        assert not lock.has_package(PackageIdentity("Acme.Core", "2.0.0"))

    def test_get_requested(self):
        lock = LockFile()
        lock.add_package(LockedPackage(id="B", version="1.0.0", requested=True))
        lock.add_package(LockedPackage(id="A", version="1.0.0"))
        lock.add_package(LockedPackage(id="C", version="1.0.0", requested=True))
        assert lock.get_requested() == [PackageIdentity("B", "1.0.0"), PackageIdentity("C", "1.0.0")]

    def test_to_yaml(self):
        lock = LockFile(pkm_version="0.1.0")
        lock.add_package(LockedPackage(id="Acme.Core", version="1.0.0"))
        data = yaml.safe_load(lock.to_yaml())
        assert data["lockfile_version"] == "1"
        assert data["pkm_version"] == "0.1.0"
        assert data["packages"] == [{"id": "Acme.Core", "version": "1.0.0"}]

    def test_from_yaml(self):
        yaml_str = (
            'lockfile_version: "1"\npkm_version: "0.1.0"\npackages:\n'
            '  - id: Acme.Core\n    version: 1.0.0\n    requested: true\n'
        )
        lock = LockFile.from_yaml(yaml_str)
        assert lock.pkm_version == "0.1.0"
        assert lock.get_requested() == [PackageIdentity("Acme.Core", "1.0.0")]

    def test_from_yaml_empty(self):
        assert LockFile.from_yaml("").packages == {}

    def test_write_and_read(self, tmp_path):
        lock = LockFile(pkm_version="0.1.0")
        lock.add_package(LockedPackage(id="Acme.Core", version="1.0.0"))
        lock_path = tmp_path / "packages" / "pkm.lock"
        lock.write(lock_path)
        assert lock_path.exists()
        loaded = LockFile.read(lock_path)
        assert loaded is not None
        assert loaded.has_package(PackageIdentity("Acme.Core", "1.0.0"))

    def test_read_nonexistent(self, tmp_path):
        assert LockFile.read(tmp_path / "pkm.lock") is None

    def test_read_corrupt_returns_none(self, tmp_path):
        lock_path = tmp_path / "pkm.lock"
        lock_path.write_text("packages:\n  - version: 1.0.0\n", encoding="utf-8")
        assert LockFile.read(lock_path) is None

    def test_load_or_create(self, tmp_path):
        lock = LockFile.load_or_create(tmp_path / "pkm.lock")
        assert lock.packages == {}

    def test_from_installed_packages(self):
        app = PackageIdentity("Acme.App", "1.0.0")
        core = PackageIdentity("Acme.Core", "1.0.0")
        graph = Mock()
        graph.get_dependencies.side_effect = lambda p: {core} if p == app else set()

        lock = LockFile.from_installed_packages(
            [app, core], graph, requested=[app], sources={core: "local-feed"}, pkm_version="0.1.0"
        )

        assert lock.get_package(app).requested is True
        assert lock.get_package(app).dependencies == ["Acme.Core 1.0.0"]
        assert lock.get_package(core).requested is False
        assert lock.get_package(core).source == "local-feed"


class TestGetLockfilePath:
    def test_get_lockfile_path(self, tmp_path):
        assert get_lockfile_path(tmp_path) == tmp_path / "pkm.lock"

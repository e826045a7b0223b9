"""Tests for redirecting an application package into a working folder."""

import io
import zipfile
from pathlib import Path

import pytest
import yaml

from pkm_cli.deps.archive import PackageArchiveReader
from pkm_cli.deps.errors import ExtractionFailedError, InstallFailedError
from pkm_cli.deps.package_manager import PackageManager
from pkm_cli.integration.executable_package import ExecutablePackagePlugin
from pkm_cli.models.identity import PackageIdentity


def _archive_bytes(package_id, version, files, dependencies=()):
    manifest = {"id": package_id, "version": version}
    if dependencies:
        manifest["dependencies"] = [{"id": d, "version": r} for d, r in dependencies]
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("pkm.yml", yaml.safe_dump(manifest))
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def _publish(feed, package_id, version, files, dependencies=()):
    feed.mkdir(parents=True, exist_ok=True)
    (feed / f"{package_id}.{version}.pkm").write_bytes(_archive_bytes(package_id, version, files, dependencies))


class TestExecutablePackagePlugin:
    def test_find_content_files(self):
        reader = PackageArchiveReader(
            _archive_bytes("Tool", "1.0", {"content/run.py": "", "content/data/a.txt": "", "lib/x.txt": ""})
        )
        plugin = ExecutablePackagePlugin("Tool", Path("unused"))
        assert sorted(plugin.find_content_files(reader)) == ["data/a.txt", "run.py"]

    def test_other_packages_pass_through(self, tmp_path):
        reader = PackageArchiveReader(_archive_bytes("Lib", "1.0", {"content/x.txt": "x"}))
        plugin = ExecutablePackagePlugin("Tool", tmp_path / "out")

        assert plugin.on_package_installing(reader.identity, reader, tmp_path / "Lib.1.0.0") is True
        assert not (tmp_path / "out").exists()
        assert plugin.result is None

    def test_copies_content_and_declines_extraction(self, tmp_path):
        reader = PackageArchiveReader(_archive_bytes("Tool", "1.0", {"content/run.py": "print()", "content/data/a.txt": "a"}))
        plugin = ExecutablePackagePlugin("tool", tmp_path / "out", entry_point="run.py")

        assert plugin.on_package_installing(reader.identity, reader, tmp_path / "Tool.1.0.0") is False

        assert (tmp_path / "out" / "run.py").read_text() == "print()"
        assert (tmp_path / "out" / "data" / "a.txt").read_text() == "a"
        assert plugin.result.identity == PackageIdentity("Tool", "1.0.0")
        assert len(plugin.result.files) == 2
        saved = yaml.safe_load(plugin.result.manifest_path.read_text())
        assert saved["id"] == "Tool"

    def test_missing_entry_point(self, tmp_path):
        reader = PackageArchiveReader(_archive_bytes("Tool", "1.0", {"content/other.py": ""}))
        plugin = ExecutablePackagePlugin("Tool", tmp_path / "out", entry_point="run.py")
        with pytest.raises(ExtractionFailedError, match="entry point 'run.py'"):
            plugin.on_package_installing(reader.identity, reader, tmp_path)


class TestExecutableInstall:
    def test_target_goes_to_destination_and_dependencies_to_root(self, tmp_path):
        feed = tmp_path / "feed"
        _publish(feed, "Tool", "1.0.0", {"content/run.py": "print()"}, [("Lib", "1.0")])
        _publish(feed, "Lib", "1.0.0", {"lib/lib.txt": "lib"})
        plugin = ExecutablePackagePlugin("Tool", tmp_path / "app")
        manager = PackageManager(tmp_path / "packages", sources=[str(feed)], plugins=[plugin])

        result = manager.install_package("Tool")

        assert not result.install_path.exists()
        assert (tmp_path / "app" / "run.py").is_file()
        assert [str(p.identity) for p in manager.get_installed_packages()] == ["Lib 1.0.0"]

    def test_missing_entry_point_fails_install(self, tmp_path):
        feed = tmp_path / "feed"
        _publish(feed, "Tool", "1.0.0", {"content/other.py": ""})
        plugin = ExecutablePackagePlugin("Tool", tmp_path / "app", entry_point="run.py")
        manager = PackageManager(tmp_path / "packages", sources=[str(feed)], plugins=[plugin])

        with pytest.raises(InstallFailedError):
            manager.install_package("Tool")

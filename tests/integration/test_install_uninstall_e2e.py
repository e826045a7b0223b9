"""
End-to-end install/uninstall round trips against a real HTTP feed.

A throwaway HTTP server publishes a feed directory laid out the way
HttpRepository expects; the tests then drive the pkm CLI against it.
"""

import functools
import io
import json
import os
import shutil
import tempfile
import threading
import zipfile
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from pkm_cli.cli import cli
from pkm_cli.deps.lockfile import LockFile
from pkm_cli.deps.package_manager import PackageManager
from pkm_cli.models.identity import PackageIdentity

pytestmark = pytest.mark.integration


PACKAGES = [
    {"id": "Acme.App", "version": "1.0.0", "dependencies": [{"id": "Acme.Core", "version": "[1.0, 2.0)"}]},
    {"id": "Acme.Core", "version": "1.0.0", "dependencies": [{"id": "Acme.Util", "version": "1.0"}]},
    {"id": "Acme.Core", "version": "1.2.0", "dependencies": [{"id": "Acme.Util", "version": "1.0"}]},
    {"id": "Acme.Util", "version": "1.0.0"},
]


def _build_feed(feed_dir: Path):
    by_id = {}
    for manifest in PACKAGES:
        by_id.setdefault(manifest["id"], []).append(manifest)
        package_id = manifest["id"].lower()
        version_dir = feed_dir / package_id / manifest["version"]
        version_dir.mkdir(parents=True)
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("pkm.yml", yaml.safe_dump(manifest))
            archive.writestr("lib/readme.txt", f"{manifest['id']} {manifest['version']}")
            archive.writestr("content/bin/run.txt", "run")
        (version_dir / f"{package_id}.{manifest['version']}.pkm").write_bytes(buffer.getvalue())

    for package_id, manifests in by_id.items():
        (feed_dir / package_id.lower() / "index.json").write_text(json.dumps({"versions": manifests}))
    (feed_dir / "index.json").write_text(json.dumps({"packages": sorted(by_id)}))


class _QuietHandler(SimpleHTTPRequestHandler):
    def log_message(self, format, *args):
        pass


@pytest.fixture(scope="module")
def feed_url():
    """Serve a generated feed over HTTP for the duration of the module."""
    feed_dir = Path(tempfile.mkdtemp(prefix="pkm-feed-"))
    _build_feed(feed_dir)
    handler = functools.partial(_QuietHandler, directory=str(feed_dir))
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
        shutil.rmtree(feed_dir, ignore_errors=True)


class TestInstallUninstallE2E:
    """Round trips through the CLI and the library against the HTTP feed."""

    def setup_method(self):
        self.test_dir = Path(tempfile.mkdtemp(prefix="pkm-e2e-"))
        self.root = self.test_dir / "packages"
        import pkm_cli.config
        self.original_config_dir = pkm_cli.config.CONFIG_DIR
        self.original_config_file = pkm_cli.config.CONFIG_FILE
        pkm_cli.config.CONFIG_DIR = str(self.test_dir / "config")
        pkm_cli.config.CONFIG_FILE = str(self.test_dir / "config" / "config.json")
        self.runner = CliRunner()

    def teardown_method(self):
        import pkm_cli.config
        pkm_cli.config.CONFIG_DIR = self.original_config_dir
        pkm_cli.config.CONFIG_FILE = self.original_config_file
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _pkm(self, *args):
        return self.runner.invoke(cli, ["--packages-path", str(self.root), *args])

    def test_cli_round_trip_leaves_root_empty(self, feed_url):
        result = self._pkm("install", "Acme.App", "--source", feed_url)
        assert result.exit_code == 0, result.output
        assert sorted(os.listdir(self.root)) == ["Acme.App.1.0.0", "Acme.Core.1.0.0", "Acme.Util.1.0.0", "pkm.lock"]

        result = self._pkm("uninstall", "Acme.App", "--remove-dependencies")
        assert result.exit_code == 0, result.output
        assert "Removed 3 package(s)" in result.output
        assert os.listdir(self.root) == []

    def test_library_install_records_lock_file(self, feed_url):
        manager = PackageManager(self.root, sources=[feed_url])
        manager.install_package("acme.app")

        lock = LockFile.read(manager.lockfile_path)
        assert lock.get_requested() == [PackageIdentity("Acme.App", "1.0.0")]
        assert lock.has_package(PackageIdentity("Acme.Core", "1.0.0"))
        assert lock.get_package(PackageIdentity("Acme.Util", "1.0.0")).source == feed_url

    def test_available_lists_feed(self, feed_url):
        result = self._pkm("deps", "available", "--source", feed_url)
        assert result.exit_code == 0, result.output
        assert "Acme.Core" in result.output
        assert "1.2.0, 1.0.0" in result.output

    def test_update_replaces_and_restore_recovers(self, feed_url):
        assert self._pkm("install", "Acme.Core@1.0.0", "--source", feed_url).exit_code == 0

        result = self._pkm("update", "Acme.Core", "--source", feed_url)
        assert result.exit_code == 0, result.output
        assert not (self.root / "Acme.Core.1.0.0").exists()

        shutil.rmtree(self.root / "Acme.Core.1.2.0")
        result = self._pkm("restore", "--source", feed_url)
        assert result.exit_code == 0, result.output
        assert (self.root / "Acme.Core.1.2.0" / "Acme.Core.1.2.0.pkm").is_file()

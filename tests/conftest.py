"""
Shared test fixtures: staging directories and fakes for the buildpack
manifest and the process runner.
"""

import os
import shutil
from pathlib import Path

import pytest

from logstash_buildpack.errors import CommandError, VersionResolutionError
from logstash_buildpack.stager import Stager


class FakeManifest(object):
    """In-memory manifest, installing a VERSION file per dependency"""

    def __init__(self, cached=False):
        self.versions = {
            "openjdk": ["1.8.0", "11.0.8", "11.0.9"],
            "logstash": ["7.9.3", "7.10.0"],
            "gte": ["1.0.0"],
            "jq": ["1.5", "1.6"],
            "ofelia": ["0.3.2"],
            "curator": ["5.8.1"],
        }
        self.defaults = {
            "openjdk": "11.0.9",
            "logstash": "7.10.0",
            "gte": "1.0.0",
            "jq": "1.6",
            "ofelia": "0.3.2",
            "curator": "5.8.1",
        }
        self.cached = cached
        self.installed = []
        self.fail = None

    def is_cached(self):
        return self.cached

    def all_dependency_versions(self, name):
        return list(self.versions.get(name, []))

    def default_version(self, name):
        if name not in self.defaults:
            raise VersionResolutionError("No default version for %s" % name)
        return self.defaults[name]

    def install_dependency(self, name, version, path):
        if self.fail == name:
            raise IOError("download of %s failed" % name)
        self.installed.append((name, version))
        os.makedirs(path, exist_ok=True)
        with open(os.path.join(path, "VERSION"), "w") as f:
            f.write(version)


class FakeRunner(object):
    """Records commands; gte calls copy the source to the destination"""

    def __init__(self):
        self.calls = []
        self.fail = None

    def check(self, command, env={}, shell=False, prefix='', wpath=None):
        self.calls.append((list(command), dict(env)))
        if self.fail and self.fail in os.path.basename(command[0]):
            raise CommandError(command, 1, ["failed"])
        if os.path.basename(command[0]) == "gte":
            src, dest = command[-1].split(":", 1)
            shutil.copyfile(src, dest)
        return []

    def commands(self, binary):
        return [c for c, _ in self.calls if os.path.basename(c[0]) == binary]


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def stager(tmp_path: Path) -> Stager:
    """Staging directories as Cloudfoundry creates them."""
    (tmp_path / "build").mkdir()
    stager = Stager(str(tmp_path / "build"), str(tmp_path / "cache"), str(tmp_path / "deps"), "0")
    stager.setup()
    return stager


@pytest.fixture
def fake_manifest() -> FakeManifest:
    return FakeManifest()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def buildpack_dir(tmp_path: Path, project_root: Path) -> Path:
    """Buildpack folder with the shipped defaults."""
    path = tmp_path / "buildpack"
    path.mkdir()
    shutil.copytree(project_root / "defaults", path / "defaults")
    return path

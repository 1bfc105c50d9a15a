"""
Tests for dependency installation and the application cache.
"""

import os
from pathlib import Path

import pytest

from logstash_buildpack.dependencies import (
    DEPENDENCIES, CacheIndex, CacheStatus, DependencyInstaller,
)
from logstash_buildpack.errors import BuildpackError, VersionResolutionError


def cache_entries(stager):
    return sorted(os.listdir(stager.cache_dir))


def add_cache_entry(stager, dir_name):
    path = Path(stager.cache_dir) / dir_name
    path.mkdir(parents=True)
    (path / "VERSION").write_text(dir_name.split("-", 1)[1])
    return path


class TestCacheIndex:

    def test_scan(self, stager):
        add_cache_entry(stager, "openjdk-11.0.9")
        add_cache_entry(stager, "jq-1.6")
        add_cache_entry(stager, "not-a-dependency-dir")
        (Path(stager.cache_dir) / "logstash-7.10.0").write_text("a file")
        index = CacheIndex.scan(stager.cache_dir)
        assert index.by_location == {"jq-1.6": CacheStatus.UNUSED, "openjdk-11.0.9": CacheStatus.UNUSED}
        assert index.cached_version("openjdk") == "11.0.9"
        assert "jq-1.6" in index
        assert "logstash-7.10.0" not in index

    def test_mark(self, stager):
        add_cache_entry(stager, "jq-1.5")
        index = CacheIndex.scan(stager.cache_dir)
        index.mark("jq-1.5", CacheStatus.DELETED)
        assert "jq-1.5" not in index
        assert index.cached_version("jq") is None
        assert index.unused() == []

    def test_missing_cache_dir(self, tmp_path: Path):
        with pytest.raises(OSError):
            CacheIndex.scan(str(tmp_path / "nothing"))


class TestSelectVersion:

    def test_default_version(self, stager, fake_manifest):
        installer = DependencyInstaller(stager, fake_manifest)
        assert installer.select_version(DEPENDENCIES["openjdk"]) == "11.0.9"

    def test_partial_override_gets_wildcard(self, stager, fake_manifest):
        installer = DependencyInstaller(stager, fake_manifest, dict(OPENJDK_VERSION="11.0"))
        assert installer.select_version(DEPENDENCIES["openjdk"]) == "11.0.9"
        installer = DependencyInstaller(stager, fake_manifest, dict(OPENJDK_VERSION="11"))
        assert installer.select_version(DEPENDENCIES["openjdk"]) == "11.0.9"

    def test_override_with_name_prefix(self, stager, fake_manifest):
        installer = DependencyInstaller(stager, fake_manifest, dict(OPENJDK_VERSION="openjdk1.8"))
        assert installer.select_version(DEPENDENCIES["openjdk"]) == "1.8.0"

    def test_config_value_wins_over_environment(self, stager, fake_manifest):
        installer = DependencyInstaller(stager, fake_manifest, dict(LOGSTASH_VERSION="7.10"))
        assert installer.select_version(DEPENDENCIES["logstash"], "7.9") == "7.9.3"

    def test_two_segment_dependency(self, stager, fake_manifest):
        installer = DependencyInstaller(stager, fake_manifest, dict(JQ_VERSION="1.5"))
        assert installer.select_version(DEPENDENCIES["jq"]) == "1.5"

    def test_no_match(self, stager, fake_manifest):
        installer = DependencyInstaller(stager, fake_manifest, dict(LOGSTASH_VERSION="6.8"))
        with pytest.raises(VersionResolutionError, match="logstash"):
            installer.select_version(DEPENDENCIES["logstash"])

    def test_locations(self, stager, fake_manifest):
        installer = DependencyInstaller(stager, fake_manifest)
        dependency = installer.resolve(DEPENDENCIES["logstash"])
        assert dependency.dir_name == "logstash-7.10.0"
        assert dependency.staging_location == os.path.join(stager.deps_dir, "0", "logstash-7.10.0")
        assert dependency.cache_location == os.path.join(stager.cache_dir, "logstash-7.10.0")
        assert dependency.runtime_location == "$DEPS_DIR/0/logstash-7.10.0"
        assert dependency.runtime_home == "$DEPS_DIR/0/logstash-7.10.0/logstash-7.10.0"
        assert dependency.staging_bin("logstash-plugin") == os.path.join(
            dependency.staging_location, "logstash-7.10.0", "bin", "logstash-plugin")


class TestInstall:

    def test_fresh_install_is_cached(self, stager, fake_manifest):
        installer = DependencyInstaller(stager, fake_manifest)
        dependency = installer.install_dependency(DEPENDENCIES["openjdk"])
        assert fake_manifest.installed == [("openjdk", "11.0.9")]
        assert (Path(dependency.staging_location) / "VERSION").read_text() == "11.0.9"
        assert (Path(dependency.cache_location) / "VERSION").read_text() == "11.0.9"
        assert installer.cache.status("openjdk-11.0.9") == CacheStatus.IN_USE
        profile = Path(stager.dep_dir) / "profile.d" / "openjdk.sh"
        content = profile.read_text()
        assert 'export JAVA_HOME="$DEPS_DIR/0/openjdk-11.0.9"' in content
        assert 'export PATH="$PATH:$JAVA_HOME/bin"' in content

    def test_install_from_application_cache(self, stager, fake_manifest):
        add_cache_entry(stager, "openjdk-11.0.9")
        installer = DependencyInstaller(stager, fake_manifest)
        dependency = installer.install_dependency(DEPENDENCIES["openjdk"])
        assert fake_manifest.installed == []
        assert (Path(dependency.staging_location) / "VERSION").read_text() == "11.0.9"
        assert installer.cache.status("openjdk-11.0.9") == CacheStatus.IN_USE

    def test_empty_cache_entry_is_reinstalled(self, stager, fake_manifest):
        (Path(stager.cache_dir) / "jq-1.6").mkdir()
        installer = DependencyInstaller(stager, fake_manifest)
        dependency = installer.install_dependency(DEPENDENCIES["jq"])
        assert fake_manifest.installed == [("jq", "1.6")]
        assert (Path(dependency.staging_location) / "VERSION").read_text() == "1.6"
        assert (Path(dependency.cache_location) / "VERSION").read_text() == "1.6"
        assert installer.cache.status("jq-1.6") == CacheStatus.IN_USE

    def test_other_version_is_evicted(self, stager, fake_manifest):
        add_cache_entry(stager, "openjdk-1.8.0")
        installer = DependencyInstaller(stager, fake_manifest)
        installer.install_dependency(DEPENDENCIES["openjdk"])
        assert fake_manifest.installed == [("openjdk", "11.0.9")]
        assert cache_entries(stager) == ["openjdk-11.0.9"]
        assert installer.cache.status("openjdk-1.8.0") == CacheStatus.DELETED

    def test_remove_unused(self, stager, fake_manifest):
        add_cache_entry(stager, "jq-1.6")
        add_cache_entry(stager, "ofelia-0.3.2")
        installer = DependencyInstaller(stager, fake_manifest)
        installer.install_dependency(DEPENDENCIES["jq"])
        assert installer.remove_unused() == ["ofelia-0.3.2"]
        assert cache_entries(stager) == ["jq-1.6"]
        assert installer.remove_unused() == []

    def test_eviction_is_idempotent(self, stager, fake_manifest):
        add_cache_entry(stager, "curator-5.8.1")
        add_cache_entry(stager, "jq-1.5")
        results = []
        for _ in range(2):
            installer = DependencyInstaller(stager, fake_manifest)
            for name in ["openjdk", "jq"]:
                installer.install_dependency(DEPENDENCIES[name])
            installer.remove_unused()
            results.append(cache_entries(stager))
        assert results[0] == results[1] == ["jq-1.6", "openjdk-11.0.9"]
        # second build only used the cache
        assert fake_manifest.installed == [("openjdk", "11.0.9"), ("jq", "1.6")]

    def test_cached_buildpack_skips_application_cache(self, stager, fake_manifest):
        fake_manifest.cached = True
        add_cache_entry(stager, "openjdk-11.0.9")
        installer = DependencyInstaller(stager, fake_manifest)
        installer.install_dependency(DEPENDENCIES["openjdk"])
        installer.install_dependency(DEPENDENCIES["jq"])
        assert fake_manifest.installed == [("openjdk", "11.0.9"), ("jq", "1.6")]
        assert cache_entries(stager) == ["openjdk-11.0.9"]
        assert installer.remove_unused() == []

    def test_manifest_failure_aborts(self, stager, fake_manifest):
        fake_manifest.fail = "jq"
        installer = DependencyInstaller(stager, fake_manifest)
        with pytest.raises(IOError):
            installer.install_dependency(DEPENDENCIES["jq"])
        assert cache_entries(stager) == []
        assert not (Path(stager.dep_dir) / "profile.d" / "jq.sh").exists()

    def test_empty_install_is_an_error(self, stager, fake_manifest):
        fake_manifest.install_dependency = lambda name, version, path: None
        installer = DependencyInstaller(stager, fake_manifest)
        with pytest.raises(BuildpackError):
            installer.install_dependency(DEPENDENCIES["gte"])

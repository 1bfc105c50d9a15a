# -*- coding: utf-8 -*-
"""
Dependency installation with the application cache.

Every dependency lives in a directory named <name>-<version>, in the deps
directory of the buildpack and, for reuse by the next staging, in the
cache directory. At the start of the build the cache directory is indexed;
entries not claimed by any dependency of the current build are deleted at
the end, so the cache only keeps the active dependency set.
"""
import os
import shutil
import logging

from enum import Enum
from collections import OrderedDict

from . import scripts
from .errors import BuildpackError, VersionResolutionError
from .manifest import find_matching_version


class CacheStatus(Enum):
    UNUSED = "unused"
    IN_USE = "in use"
    DELETED = "deleted"


class DependencySpec(object):
    """Row of the dependency table"""

    def __init__(self, name, version_parts, env_var, home_var, bin_dir="bin", home_subdir=""):
        self.name = name
        self.version_parts = version_parts
        self.env_var = env_var
        self.home_var = home_var
        self.bin_dir = bin_dir
        # some archives unpack to a versioned folder, eg. logstash-7.9.3
        self.home_subdir = home_subdir


DEPENDENCIES = OrderedDict(
    openjdk = DependencySpec("openjdk", 3, "OPENJDK_VERSION", "JAVA_HOME"),
    logstash = DependencySpec("logstash", 3, "LOGSTASH_VERSION", "LOGSTASH_HOME", home_subdir="logstash-{version}"),
    gte = DependencySpec("gte", 3, "GTE_VERSION", "GTE_HOME", bin_dir=""),
    jq = DependencySpec("jq", 2, "JQ_VERSION", "JQ_HOME", bin_dir=""),
    ofelia = DependencySpec("ofelia", 3, "OFELIA_VERSION", "OFELIA_HOME", bin_dir=""),
    curator = DependencySpec("curator", 3, "CURATOR_VERSION", "CURATOR_HOME"),
)


class Dependency(object):
    """A dependency with its version resolved and its locations computed"""

    def __init__(self, spec, version, stager):
        self.spec = spec
        self.name = spec.name
        self.version_parts = spec.version_parts
        self.version = version
        self.dir_name = "%s-%s" % (spec.name, version)
        self.staging_location = os.path.join(stager.dep_dir, self.dir_name)
        self.runtime_location = stager.runtime_location(self.dir_name)
        self.cache_location = os.path.join(stager.cache_dir, self.dir_name)

    def __repr__(self):
        return "Dependency(%s)" % self.dir_name

    def _home(self, location):
        if self.spec.home_subdir:
            return location + "/" + self.spec.home_subdir.format(version=self.version)
        return location

    @property
    def staging_home(self):
        return self._home(self.staging_location)

    @property
    def runtime_home(self):
        return self._home(self.runtime_location)

    def staging_bin(self, binary):
        parts = [self.staging_home, self.spec.bin_dir, binary]
        return os.path.join(*[p for p in parts if p])

    def profile_script(self):
        return scripts.profile_d(self.spec.home_var, self.runtime_home, self.spec.bin_dir)


class CacheIndex(object):

    @classmethod
    def scan(cls, cache_dir, logger=None):
        index = cls(cache_dir, logger)
        try:
            entries = sorted(os.listdir(cache_dir))
        except OSError as e:
            index.logger.error("Failed reading cache directory %s: %s" % (cache_dir, str(e)))
            raise
        for entry in entries:
            if not os.path.isdir(os.path.join(cache_dir, entry)):
                continue
            parts = entry.split("-")
            if len(parts) == 2:
                index.by_location[entry] = CacheStatus.UNUSED
                index.by_name[parts[0]] = parts[1]
        index.logger.debug("Cached dependencies: %s" % ", ".join(index.by_location.keys()))
        return index

    def __init__(self, cache_dir, logger=None):
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger
        self.cache_dir = cache_dir
        self.by_location = OrderedDict()
        self.by_name = {}

    def __contains__(self, dir_name):
        status = self.by_location.get(dir_name)
        return status is not None and status != CacheStatus.DELETED

    def status(self, dir_name):
        return self.by_location.get(dir_name)

    def cached_version(self, name):
        return self.by_name.get(name)

    def mark(self, dir_name, status):
        self.by_location[dir_name] = status
        name, _, version = dir_name.partition("-")
        if status == CacheStatus.DELETED:
            if self.by_name.get(name) == version:
                del self.by_name[name]
        else:
            self.by_name[name] = version

    def unused(self):
        return [k for k, v in self.by_location.items() if v == CacheStatus.UNUSED]


class DependencyInstaller(object):

    def __init__(self, stager, manifest, env={}, logger=None):
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger
        self.stager = stager
        self.manifest = manifest
        self.env = env
        self.cache = CacheIndex.scan(stager.cache_dir, logger)

    def _remove(self, path):
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.error("Error deleting '%s': %s" % (e.filename, e.strerror))
            raise

    def _copy(self, src, dest):
        try:
            shutil.copytree(src, dest, symlinks=True, dirs_exist_ok=True)
        except (OSError, shutil.Error) as e:
            self.logger.error("Error copying '%s' to '%s': %s" % (src, dest, str(e)))
            raise

    def _populated(self, path):
        return os.path.isdir(path) and len(os.listdir(path)) > 0

    def select_version(self, spec, override=""):
        version = override or self.env.get(spec.env_var, "")
        if version:
            self.logger.debug("Using version '%s' of %s from configuration" % (version, spec.name))
        else:
            version = self.manifest.default_version(spec.name)
        if version.startswith(spec.name):
            version = version[len(spec.name):]
        if len(version.split(".")) < spec.version_parts:
            version += ".x"
        try:
            return find_matching_version(version, self.manifest.all_dependency_versions(spec.name))
        except VersionResolutionError as e:
            msg = "Unable to determine the version of %s: %s" % (spec.name, str(e))
            self.logger.error(msg)
            raise VersionResolutionError(msg)

    def resolve(self, spec, override=""):
        return Dependency(spec, self.select_version(spec, override), self.stager)

    def install(self, dependency):
        cached = dependency.dir_name in self.cache
        if cached:
            self.cache.mark(dependency.dir_name, CacheStatus.IN_USE)
        else:
            orphan = self.cache.cached_version(dependency.name)
            if orphan is not None:
                orphan_dir = "%s-%s" % (dependency.name, orphan)
                self.logger.info("--> deleting unused dependency version '%s' from application cache" % orphan_dir)
                self._remove(os.path.join(self.stager.cache_dir, orphan_dir))
                self.cache.mark(orphan_dir, CacheStatus.DELETED)
        precached = self.manifest.is_cached()
        if cached and not precached:
            self.logger.info("--> installing dependency '%s' from application cache" % dependency.dir_name)
            self._copy(dependency.cache_location, dependency.staging_location)
            if self._populated(dependency.staging_location):
                return dependency
            self.logger.warning("Cached dependency '%s' is empty, removing it from application cache" %
                                dependency.dir_name)
            self._remove(dependency.cache_location)
            self.cache.mark(dependency.dir_name, CacheStatus.DELETED)
        if precached:
            self.logger.info("--> installing dependency '%s' from buildpack cache" % dependency.dir_name)
        else:
            self.logger.info("--> installing dependency '%s' from remote gallery" % dependency.dir_name)
        try:
            self.manifest.install_dependency(dependency.name, dependency.version, dependency.staging_location)
        except Exception as e:
            self.logger.error("Error installing '%s': %s" % (dependency.name, str(e)))
            raise
        if not self._populated(dependency.staging_location):
            msg = "Installing '%s' left %s empty" % (dependency.dir_name, dependency.staging_location)
            self.logger.error(msg)
            raise BuildpackError(msg)
        if not precached:
            self._copy(dependency.staging_location, dependency.cache_location)
            self.cache.mark(dependency.dir_name, CacheStatus.IN_USE)
            self.logger.info("--> dependency '%s' saved to application cache" % dependency.dir_name)
        return dependency

    def install_dependency(self, spec, override=""):
        """Resolve, install and expose a dependency through profile.d"""
        dependency = self.resolve(spec, override)
        self.install(dependency)
        self.stager.write_profile_d("%s.sh" % spec.name, dependency.profile_script())
        return dependency

    def remove_unused(self):
        removed = []
        for dir_name in self.cache.unused():
            self.logger.info("--> deleting unused dependency '%s' from application cache" % dir_name)
            self._remove(os.path.join(self.stager.cache_dir, dir_name))
            self.cache.mark(dir_name, CacheStatus.DELETED)
            removed.append(dir_name)
        return removed

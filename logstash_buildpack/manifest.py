# -*- coding: utf-8 -*-
"""
Buildpack manifest.yml: known dependency versions, defaults and how to
fetch them, either from the internet or from the files packaged with a
cached (offline) buildpack.
"""
import os
import re
import stat
import shutil
import hashlib
import logging
import tarfile
import zipfile
import tempfile

from urllib.parse import urlsplit

import requests

from .config import VersionLoader, read_yaml
from .errors import BuildpackError, ConfigError, MissingFileError, VersionResolutionError

WILDCARDS = ("x", "X", "*")


def version_key(version):
    key = []
    for part in re.split(r"[.+_-]", version):
        if part.isdigit():
            key.append((1, int(part)))
        else:
            key.append((0, part))
    return key


def _matches(wanted, parts):
    for i, w in enumerate(wanted):
        if w in WILDCARDS:
            return True
        if i >= len(parts) or parts[i] != w:
            return False
    return len(parts) == len(wanted)


def find_matching_version(constraint, versions):
    """Highest version matching a constraint like 1.8.x or 6.2.4"""
    wanted = constraint.strip().split(".")
    matches = [v for v in versions if _matches(wanted, v.split("."))]
    if not matches:
        raise VersionResolutionError(
            "No version matching '%s' in [%s]" % (constraint, ", ".join(versions)))
    return max(matches, key=version_key)


class Manifest(object):
    Filename = "manifest.yml"

    def __init__(self, buildpack_dir, stack="", session=None, logger=None):
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger
        self.buildpack_dir = buildpack_dir
        self.stack = stack
        self.session = session if session is not None else requests.Session()
        path = os.path.join(buildpack_dir, self.Filename)
        self.logger.debug("Reading buildpack manifest: %s" % path)
        data = read_yaml(path, self.logger, "buildpack manifest", VersionLoader)
        if not isinstance(data, dict):
            msg = "Buildpack manifest %s is empty or not a mapping" % path
            self.logger.error(msg)
            raise ConfigError(msg)
        self.language = data.get("language", "")
        self.default_versions = data.get("default_versions") or []
        self.dependencies = []
        for dep in data.get("dependencies") or []:
            try:
                name, version = dep["name"], str(dep["version"])
            except (KeyError, TypeError):
                msg = "Buildpack manifest dependency without name/version: %r" % (dep,)
                self.logger.error(msg)
                raise ConfigError(msg)
            stacks = dep.get("cf_stacks") or []
            if self.stack and stacks and self.stack not in stacks:
                self.logger.debug("Skipping %s %s, not available for stack %s" % (name, version, self.stack))
                continue
            self.dependencies.append(dict(dep, version=version))

    def is_cached(self):
        return os.path.isdir(os.path.join(self.buildpack_dir, "dependencies"))

    def all_dependency_versions(self, name):
        return [d["version"] for d in self.dependencies if d["name"] == name]

    def default_version(self, name):
        found = [str(d.get("version")) for d in self.default_versions if d.get("name") == name]
        if len(found) != 1:
            if found:
                msg = "Found %d default versions for %s" % (len(found), name)
            else:
                msg = "No default version for %s" % name
            self.logger.error(msg)
            raise VersionResolutionError(msg)
        return find_matching_version(found[0], self.all_dependency_versions(name))

    def _entry(self, name, version):
        for d in self.dependencies:
            if d["name"] == name and d["version"] == version:
                return d
        msg = "Dependency %s %s not found in the buildpack manifest" % (name, version)
        self.logger.error(msg)
        raise VersionResolutionError(msg)

    def cached_file(self, uri):
        digest = hashlib.md5(uri.encode("utf-8")).hexdigest()
        return os.path.join(self.buildpack_dir, "dependencies", digest, os.path.basename(urlsplit(uri).path))

    def _fetch(self, uri, dest):
        if self.is_cached():
            src = self.cached_file(uri)
            if not os.path.isfile(src):
                msg = "Cached buildpack does not provide %s (%s)" % (uri, src)
                self.logger.error(msg)
                raise MissingFileError(msg)
            shutil.copyfile(src, dest)
            return
        self.logger.debug("Downloading %s" % uri)
        try:
            with self.session.get(uri, stream=True) as response:
                response.raise_for_status()
                with open(dest, "wb") as f:
                    for chunk in response.iter_content(chunk_size=65536):
                        f.write(chunk)
        except requests.RequestException as e:
            self.logger.error("Cannot download %s: %s" % (uri, str(e)))
            raise

    def _verify(self, path, sha256):
        if not sha256:
            self.logger.warning("No sha256 checksum for %s in the manifest" % os.path.basename(path))
            return
        h = hashlib.sha256()
        with open(path, "rb") as f:
            for block in iter(lambda: f.read(65536), b""):
                h.update(block)
        if h.hexdigest() != sha256:
            msg = "Checksum mismatch for %s: expected %s, got %s" % (os.path.basename(path), sha256, h.hexdigest())
            self.logger.error(msg)
            raise BuildpackError(msg)

    def _extract(self, archive, path, name):
        if zipfile.is_zipfile(archive):
            with zipfile.ZipFile(archive) as z:
                for info in z.infolist():
                    extracted = z.extract(info, path)
                    mode = info.external_attr >> 16
                    if mode and not info.is_dir():
                        os.chmod(extracted, stat.S_IMODE(mode))
        elif tarfile.is_tarfile(archive):
            with tarfile.open(archive) as tar:
                tar.extractall(path, filter="data")
        else:
            # single binaries like jq or gte
            dest = os.path.join(path, name)
            shutil.copyfile(archive, dest)
            os.chmod(dest, 0o755)

    def install_dependency(self, name, version, path):
        entry = self._entry(name, version)
        uri = entry.get("uri", "")
        if not uri:
            msg = "Dependency %s %s has no uri in the manifest" % (name, version)
            self.logger.error(msg)
            raise ConfigError(msg)
        os.makedirs(path, mode=0o755, exist_ok=True)
        with tempfile.TemporaryDirectory() as tmp:
            archive = os.path.join(tmp, os.path.basename(urlsplit(uri).path) or name)
            self._fetch(uri, archive)
            self._verify(archive, entry.get("sha256"))
            self._extract(archive, path, name)
        self.logger.debug("Installed %s %s in %s" % (name, version, path))

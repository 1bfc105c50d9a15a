# -*- coding: utf-8 -*-
"""
Staging directories handed over by Cloudfoundry to the buildpack and the
files the buildpack leaves for the next stages and the running container.
"""
import os
import logging

import yaml

from .config import read_yaml
from .errors import ConfigError


class Stager(object):
    ConfigName = "logstash"

    def __init__(self, build_dir, cache_dir, deps_dir, deps_idx, logger=None):
        # build_dir = application bits, becomes /home/vcap/app
        # cache_dir = persisted between stagings of the same app
        # deps_dir = shared by all buildpacks, each one owns deps_dir/deps_idx
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger
        self.build_dir = build_dir
        self.cache_dir = cache_dir
        self.deps_dir = deps_dir
        self.deps_idx = str(deps_idx)
        self.dep_dir = os.path.join(deps_dir, self.deps_idx)

    def setup(self):
        for path in [self.cache_dir, self.dep_dir]:
            try:
                os.makedirs(path, mode=0o755, exist_ok=True)
                self.logger.debug("Directory '%s' created successfully" % path)
            except OSError as e:
                self.logger.error("Directory '%s' cannot be created: %s" % (path, str(e)))
                raise

    def runtime_location(self, *paths):
        """Path as seen from the running container, for generated scripts"""
        return "/".join(["$DEPS_DIR", self.deps_idx] + list(paths))

    def _write(self, directory, name, content, mode=0o644):
        path = os.path.join(self.dep_dir, directory, name)
        try:
            os.makedirs(os.path.dirname(path), mode=0o755, exist_ok=True)
            with open(path, "w") as f:
                f.write(content)
            os.chmod(path, mode)
        except OSError as e:
            self.logger.error("File '%s' cannot be created: %s" % (path, str(e)))
            raise
        return path

    def write_profile_d(self, name, content):
        path = self._write("profile.d", name, content, 0o755)
        self.logger.debug("Written profile.d script %s" % path)
        return path

    def write_env_file(self, name, value):
        return self._write("env", name, value)

    def write_config_yml(self, config):
        content = yaml.safe_dump({"name": self.ConfigName, "config": config}, default_flow_style=False)
        return self._write("", "config.yml", content)

    def read_config_yml(self):
        path = os.path.join(self.dep_dir, "config.yml")
        data = read_yaml(path, self.logger, "config.yml")
        if not isinstance(data, dict) or not isinstance(data.get("config"), dict):
            msg = "Invalid %s, no 'config' section" % path
            self.logger.error(msg)
            raise ConfigError(msg)
        return data["config"]

# -*- coding: utf-8 -*-
"""
Finalize stage: startup script and release information, from the
config.yml left by the supply stage.
"""
import os
import logging

from . import scripts
from .supply import Supplier
from .templates import TemplateInstaller

START_COMMAND = "bin/run.sh"
RELEASE_FILE = "/tmp/buildpack-release-step.yml"


class Finalizer(object):

    def __init__(self, stager, release_file=RELEASE_FILE, logger=None):
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger
        self.stager = stager
        self.release_file = release_file

    def run(self):
        config = self.stager.read_config_yml()
        self.logger.info("Finalizing Logstash %s" % config.get("LogstashVersion", "?"))
        self.write_run_script(config.get("CuratorInstalled", False))
        self.write_release()

    def write_run_script(self, curator=False):
        curator_dir = Supplier.CuratorDir if curator else ""
        path = os.path.join(self.stager.build_dir, START_COMMAND)
        try:
            os.makedirs(os.path.dirname(path), mode=0o755, exist_ok=True)
            with open(path, "w") as f:
                f.write(scripts.run_script(TemplateInstaller.ConfDir, curator_dir))
            os.chmod(path, 0o755)
        except OSError as e:
            self.logger.error("Start script '%s' cannot be created: %s" % (path, str(e)))
            raise
        self.logger.debug("Start script written to %s" % path)
        return path

    def write_release(self):
        try:
            with open(self.release_file, "w") as f:
                f.write(scripts.release_yaml(START_COMMAND))
        except OSError as e:
            self.logger.error("Release file '%s' cannot be created: %s" % (self.release_file, str(e)))
            raise
        return self.release_file

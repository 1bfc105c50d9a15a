# -*- coding: utf-8 -*-
"""
Supply stage: install the dependencies and prepare the Logstash
configuration of the application.
"""
import os
import glob
import logging

from collections import OrderedDict

from . import scripts
from .config import LogstashConfig, TemplatesCatalog, VcapApplication, VcapServices
from .dependencies import DEPENDENCIES, DependencyInstaller
from .errors import ConfigError, MissingFileError
from .runner import Runner
from .templates import TemplateInstaller, has_user_config, resolve_templates

BASE_DEPENDENCIES = ["openjdk", "logstash", "gte", "jq"]
CURATOR_DEPENDENCIES = ["ofelia", "curator"]


def heap_java_opts(memory_limit, reserved_memory, heap_percentage):
    heap = (memory_limit - reserved_memory) // 100 * heap_percentage
    if heap <= 0:
        raise ConfigError("Memory limit %dm leaves no heap with reserved-memory %dm and heap-percentage %d" % (
            memory_limit, reserved_memory, heap_percentage))
    return "-Xmx%dm -Xms%dm" % (heap, heap)


def read_local_plugins(path):
    # no plugins folder means no local plugins
    return sorted(glob.glob(os.path.join(path, "*.gem")))


class Supplier(object):
    CertificatesDir = "certificates"
    PluginsDir = "plugins"
    CuratorDir = "curator.d"

    def __init__(self, stager, manifest, buildpack_dir, env={}, runner=None, logger=None):
        # env = environment of the staging process, VCAP_* and version overrides
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger
        self.stager = stager
        self.manifest = manifest
        self.buildpack_dir = buildpack_dir
        self.defaults_dir = os.path.join(buildpack_dir, "defaults")
        self.env = env
        self.runner = runner if runner is not None else Runner(stager.build_dir, logger=logger)
        self.config = None
        self.app = VcapApplication()
        self.services = VcapServices()
        self.dependencies = OrderedDict()
        self.templates = []
        self.curator_installed = False

    def run(self):
        self.stager.setup()
        self.load_config()
        self.read_environment()
        installer = DependencyInstaller(self.stager, self.manifest, self.env, self.logger)
        self.install_dependencies(installer)
        installer.remove_unused()
        self.stager.write_profile_d("logstash-opts.sh", scripts.logstash_opts(self.config))
        self.install_templates()
        self.install_certificates()
        self.install_plugins()
        self.install_curator()
        if self.config.config_check:
            self.check_config()
        self.write_config_yml()
        self.logger.info("Logstash %s staged" % self.dependencies["logstash"].version)

    def load_config(self):
        path = os.path.join(self.stager.build_dir, LogstashConfig.Filename)
        self.config = LogstashConfig.load(path, self.logger)
        return self.config

    def read_environment(self):
        self.app = VcapApplication.parse(self.env.get("VCAP_APPLICATION", ""), self.logger)
        self.services = VcapServices.parse(self.env.get("VCAP_SERVICES", ""), self.logger)
        self.logger.debug("Found %d bound services" % len(self.services))

    def install_dependencies(self, installer):
        overrides = dict(logstash=self.config.version, curator=self.config.curator.version)
        names = list(BASE_DEPENDENCIES)
        if self.config.curator.install:
            names += CURATOR_DEPENDENCIES
        for name in names:
            dependency = installer.install_dependency(DEPENDENCIES[name], overrides.get(name, ""))
            self.dependencies[name] = dependency
        return self.dependencies

    def java_opts(self):
        if self.config.java_opts:
            return self.config.java_opts
        memory = self.app.memory_limit
        if memory is None:
            self.logger.debug("Memory limit unknown, using default Java heap")
            return ""
        try:
            return heap_java_opts(memory, self.config.reserved_memory, self.config.heap_percentage)
        except ConfigError as e:
            self.logger.error(str(e))
            raise

    def java_env(self):
        env = dict(JAVA_HOME=self.dependencies["openjdk"].staging_home)
        opts = self.java_opts()
        if opts:
            env["LS_JAVA_OPTS"] = opts
        return env

    def template_installer(self):
        return TemplateInstaller(
            self.defaults_dir, self.stager.build_dir,
            self.dependencies["gte"].staging_bin("gte"),
            self.runner, dict(VCAP_SERVICES=self.env.get("VCAP_SERVICES", "{}")), self.logger)

    def install_templates(self):
        catalog = TemplatesCatalog.load(os.path.join(self.defaults_dir, "templates", "templates.yml"), self.logger)
        self.templates = resolve_templates(
            catalog, self.config.config_templates, self.services,
            self.config.enable_service_fallback, has_user_config(self.stager.build_dir), self.logger)
        if self.templates:
            self.template_installer().install(self.templates)
        return self.templates

    def keystore(self):
        home = self.dependencies["openjdk"].staging_home
        jre = os.path.join(home, "jre", "lib", "security", "cacerts")
        if os.path.isfile(jre):
            return jre
        return os.path.join(home, "lib", "security", "cacerts")

    def install_certificates(self):
        installed = []
        if not self.config.certificates:
            return installed
        keytool = self.dependencies["openjdk"].staging_bin("keytool")
        keystore = self.keystore()
        for name in self.config.certificates:
            path = os.path.join(self.stager.build_dir, self.CertificatesDir, name)
            if not os.path.isfile(path):
                msg = "Certificate '%s' not found in %s" % (name, self.CertificatesDir)
                self.logger.error(msg)
                raise MissingFileError(msg)
            self.logger.info("--> importing certificate '%s'" % name)
            cmd = [keytool, "-importcert", "-noprompt", "-trustcacerts", "-alias", name,
                   "-file", path, "-keystore", keystore, "-storepass", "changeit"]
            self.runner.check(cmd, self.java_env(), prefix="[KEYTOOL] ")
            installed.append(name)
        return installed

    def plugins(self):
        plugins = []
        for p in self.config.plugins + [p for t in self.templates for p in t.plugins]:
            if p not in plugins:
                plugins.append(p)
        return plugins

    def install_plugins(self):
        plugins = self.plugins()
        local = read_local_plugins(os.path.join(self.stager.build_dir, self.PluginsDir))
        if not plugins and not local:
            return plugins, local
        logstash_plugin = self.dependencies["logstash"].staging_bin("logstash-plugin")
        env = self.java_env()
        if plugins:
            self.logger.info("--> installing plugins: %s" % ", ".join(plugins))
            self.runner.check([logstash_plugin, "install"] + plugins, env, prefix="[PLUGIN] ")
        if local:
            self.logger.info("--> installing local plugins: %s" % ", ".join(os.path.basename(p) for p in local))
            self.runner.check([logstash_plugin, "install", "--no-verify"] + local, env, prefix="[PLUGIN] ")
        return plugins, local

    def install_curator(self):
        if not self.config.curator.install:
            return False
        curator_dir = os.path.join(self.stager.build_dir, self.CuratorDir)
        installer = self.template_installer()
        for src in sorted(glob.glob(os.path.join(self.defaults_dir, "curator", "*.yml"))):
            dest = os.path.join(curator_dir, os.path.basename(src))
            if os.path.isfile(dest):
                self.logger.info("--> using curator %s provided by the application" % os.path.basename(src))
            else:
                installer.render(src, dest)
        command = '/bin/sh -c \'"$CURATOR_HOME/bin/curator" --config "$HOME/%s/curator.yml" "$HOME/%s/actions.yml"\'' % (
            self.CuratorDir, self.CuratorDir)
        path = os.path.join(curator_dir, "ofelia.ini")
        try:
            os.makedirs(curator_dir, mode=0o755, exist_ok=True)
            with open(path, "w") as f:
                f.write(scripts.ofelia_ini(self.config.curator.schedule, command))
        except OSError as e:
            self.logger.error("Ofelia configuration '%s' cannot be created: %s" % (path, str(e)))
            raise
        self.logger.info("--> curator scheduled '%s'" % self.config.curator.schedule)
        self.curator_installed = True
        return True

    def check_config(self):
        logstash = self.dependencies["logstash"].staging_bin("logstash")
        conf = os.path.join(self.stager.build_dir, TemplateInstaller.ConfDir)
        self.logger.info("--> checking Logstash configuration")
        self.runner.check([logstash, "-f", conf, "-t"], self.java_env(), prefix="[LOGSTASH] ")

    def write_config_yml(self):
        config = {
            "LogstashVersion": self.dependencies["logstash"].version,
            "Dependencies": dict((name, d.version) for name, d in self.dependencies.items()),
            "CuratorInstalled": self.curator_installed,
            "Templates": [
                {"name": t.name, "service-instance-name": t.service_instance_name, "is-fallback": t.is_fallback}
                for t in self.templates
            ],
        }
        return self.stager.write_config_yml(config)

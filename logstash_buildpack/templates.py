# -*- coding: utf-8 -*-
"""
Logstash configuration templates.

The buildpack ships a catalog of templates (defaults/templates/templates.yml).
Without user configuration, all default templates are installed and each
tagged one is bound to the single service carrying one of its tags. When the
application declares config-templates, only those are installed, with the
service instance names the application gives.
"""
import os
import logging

from collections import OrderedDict

from .errors import MissingFileError, ServiceBindingError


def resolve_templates(catalog, declared, services, fallback_enabled, user_config=False, logger=None):
    """List of templates to install, each bound to its service instance name"""
    if not logger:
        logger = logging.getLogger("TemplateResolver")
    resolved = []
    if declared:
        for entry in declared:
            template = catalog.get(entry.name)
            if template is None:
                logger.warning("Template '%s' not found in the catalog, skipping it" % entry.name)
                continue
            if template.tags:
                if not entry.service_instance_name:
                    msg = "No service-instance-name given for template '%s'" % template.name
                    logger.error(msg)
                    raise ServiceBindingError(msg)
                resolved.append(template.bind(entry.service_instance_name))
            else:
                if entry.service_instance_name:
                    logger.warning("Template '%s' does not use services, ignoring service-instance-name '%s'" % (
                        template.name, entry.service_instance_name))
                resolved.append(template.bind(""))
        return resolved
    if user_config:
        logger.info("Using the Logstash configuration provided by the application")
        return resolved
    for template in catalog.defaults():
        if not template.tags:
            resolved.append(template.bind(""))
            continue
        found = services.with_tags(template.tags)
        if len(found) == 1:
            logger.debug("Template '%s' bound to service '%s'" % (template.name, found[0].name))
            resolved.append(template.bind(found[0].name))
        elif len(found) > 1:
            names = sorted(s.name for s in found)
            msg = "More than one service found for template '%s' with tags %s: %s" % (
                template.name, template.tags, ", ".join(names))
            logger.error(msg)
            raise ServiceBindingError(msg)
        elif fallback_enabled:
            logger.warning("No service found for template '%s' with tags %s, installing it without service" % (
                template.name, template.tags))
            resolved.append(template.bind(""))
        else:
            msg = "No service found for template '%s' with tags %s" % (template.name, template.tags)
            logger.error(msg)
            raise ServiceBindingError(msg)
    return resolved


class TemplateInstaller(object):
    Delimiters = "<<:>>"
    ConfDir = "logstash.conf.d"
    GrokDir = "grok-patterns"
    MappingDir = "mappings"

    def __init__(self, defaults_dir, build_dir, gte, runner, env={}, logger=None):
        # defaults_dir = buildpack defaults with templates, grok-patterns and mappings
        # gte = path of the template expansion binary
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger
        self.defaults_dir = defaults_dir
        self.build_dir = build_dir
        self.gte = gte
        self.runner = runner
        self.env = env

    def render(self, src, dest, env={}):
        if not os.path.isfile(src):
            msg = "Template file not found: %s" % src
            self.logger.error(msg)
            raise MissingFileError(msg)
        try:
            os.makedirs(os.path.dirname(dest), mode=0o755, exist_ok=True)
        except OSError as e:
            self.logger.error("Directory cannot be created: %s" % (str(e)))
            raise
        cmd = [self.gte, "-d", self.Delimiters, "%s:%s" % (src, dest)]
        self.runner.check(cmd, {**self.env, **env}, prefix="[GTE] ", wpath=self.build_dir)

    def install(self, templates):
        """Render templates, then their grok patterns and mappings once each"""
        shared = OrderedDict()
        for t in templates:
            self.logger.info("--> installing template '%s'" % t.name)
            src = os.path.join(self.defaults_dir, "templates", t.name + ".conf")
            dest = os.path.join(self.build_dir, self.ConfDir, t.name + ".conf")
            self.render(src, dest, dict(SERVICE_INSTANCE_NAME=t.service_instance_name))
            for f in t.groks:
                shared.setdefault((self.GrokDir, f), t)
            for f in t.mappings:
                shared.setdefault((self.MappingDir, f), t)
        for (kind, f) in shared:
            self.logger.debug("Installing %s file '%s'" % (kind, f))
            src = os.path.join(self.defaults_dir, kind, f)
            dest = os.path.join(self.build_dir, kind, f)
            self.render(src, dest)
        return list(shared.keys())


def has_user_config(build_dir, conf_dir=TemplateInstaller.ConfDir):
    path = os.path.join(build_dir, conf_dir)
    try:
        return any(os.path.isfile(os.path.join(path, f)) for f in os.listdir(path))
    except FileNotFoundError:
        return False

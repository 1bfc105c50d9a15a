# -*- coding: utf-8 -*-
"""
Readers for the declarative inputs of the buildpack: the application
Logstash file, the buildpack templates catalog and the VCAP_* blobs.
"""
import copy
import json
import logging

import yaml

from .errors import ConfigError, MissingFileError


class VersionLoader(yaml.SafeLoader):
    """SafeLoader keeping decimals like 7.10 as text, they are versions"""


VersionLoader.yaml_implicit_resolvers = dict(
    (first, [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:float"])
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
)


def read_yaml(path, logger, kind="YAML file", loader=yaml.SafeLoader):
    try:
        with open(path) as file:
            return yaml.load(file, Loader=loader)
    except FileNotFoundError:
        msg = "%s not found: %s" % (kind, path)
        logger.error(msg)
        raise MissingFileError(msg)
    except yaml.YAMLError as e:
        msg = "Cannot parse %s %s: %s" % (kind, path, str(e))
        logger.error(msg)
        raise ConfigError(msg)


def _typed(key, value, default):
    # YAML reads 6.8 or 7 as numbers, but they are versions
    if isinstance(default, str) and isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(default, bool):
        valid = isinstance(value, bool)
    elif isinstance(default, int):
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = isinstance(value, type(default))
    if not valid:
        raise ConfigError("Key '%s' must be of type %s, got %r" % (key, type(default).__name__, value))
    return value


class Params(object):
    """Mapping backed settings with defaults, keys use dashes like the YAML"""
    ParamsDefaults = {}
    Section = "config"

    def __init__(self, data=None, logger=None):
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger
        if data is None:
            data = {}
        if not isinstance(data, dict):
            msg = "%s must be a mapping, got %r" % (self.Section, data)
            self.logger.error(msg)
            raise ConfigError(msg)
        for key in data:
            if key not in self.ParamsDefaults:
                self.logger.warning("Ignoring unknown key '%s' in %s" % (key, self.Section))
        self.params = {}
        for key, default in self.ParamsDefaults.items():
            value = data.get(key)
            if value is None:
                self.params[key] = copy.deepcopy(default)
                continue
            try:
                self.params[key] = _typed(key, value, default)
            except ConfigError as e:
                msg = "Invalid %s: %s" % (self.Section, str(e))
                self.logger.error(msg)
                raise ConfigError(msg)

    def __getitem__(self, key):
        return self.params[key]

    def _strings(self, key):
        values = self.params[key]
        for v in values:
            if not isinstance(v, str):
                msg = "Invalid %s: '%s' must be a list of strings" % (self.Section, key)
                self.logger.error(msg)
                raise ConfigError(msg)
        return values


class Curator(Params):
    Section = "curator"
    ParamsDefaults = {
        "install": False,
        "version": "",
        "schedule": "@daily",
    }

    def __init__(self, data=None, logger=None):
        super().__init__(data, logger)
        self.install = self["install"]
        self.version = self["version"]
        self.schedule = self["schedule"]


class ConfigTemplate(Params):
    Section = "config-templates"
    ParamsDefaults = {
        "name": "",
        "service-instance-name": "",
    }

    def __init__(self, data=None, logger=None):
        super().__init__(data, logger)
        self.name = self["name"]
        self.service_instance_name = self["service-instance-name"]
        if not self.name:
            msg = "Invalid config-templates: entry without name"
            self.logger.error(msg)
            raise ConfigError(msg)


class LogstashConfig(Params):
    Filename = "Logstash"
    Section = "Logstash file"
    ParamsDefaults = {
        "log-level": "info",
        "version": "",
        "plugins": [],
        "certificates": [],
        "cmd-args": "",
        "java-opts": "",
        "reserved-memory": 300,
        "heap-percentage": 90,
        "config-check": False,
        "config-templates": [],
        "enable-service-fallback": False,
        "curator": {},
    }

    @classmethod
    def load(cls, path, logger=None):
        if not logger:
            logger = logging.getLogger(cls.__name__)
        logger.debug("Reading Logstash file: %s" % path)
        return cls(read_yaml(path, logger, cls.Section, VersionLoader), logger)

    def __init__(self, data=None, logger=None):
        super().__init__(data, logger)
        self.log_level = self["log-level"]
        self.version = self["version"]
        self.plugins = self._strings("plugins")
        self.certificates = self._strings("certificates")
        self.cmd_args = self["cmd-args"]
        self.java_opts = self["java-opts"]
        self.reserved_memory = self["reserved-memory"]
        self.heap_percentage = self["heap-percentage"]
        self.config_check = self["config-check"]
        self.enable_service_fallback = self["enable-service-fallback"]
        self.config_templates = [ConfigTemplate(t, self.logger) for t in self["config-templates"]]
        self.curator = Curator(self["curator"], self.logger)
        if not 0 <= self.heap_percentage <= 100:
            msg = "Invalid Logstash file: heap-percentage must be between 0 and 100"
            self.logger.error(msg)
            raise ConfigError(msg)


class Template(object):
    """Entry of the buildpack templates catalog"""

    def __init__(self, name, type="", is_default=False, is_fallback=False,
                 tags=[], groks=[], mappings=[], plugins=[]):
        self.name = name
        self.type = type
        self.is_default = is_default
        self.is_fallback = is_fallback
        self.tags = list(tags)
        self.groks = list(groks)
        self.mappings = list(mappings)
        self.plugins = list(plugins)
        self.service_instance_name = ""

    def __repr__(self):
        return "Template(%s, service=%r)" % (self.name, self.service_instance_name)

    def bind(self, service_instance_name):
        """Working copy of the template bound to a service instance"""
        template = copy.copy(self)
        template.service_instance_name = service_instance_name
        return template


class TemplatesCatalog(object):
    Keys = {
        "name": "name",
        "type": "type",
        "is-default": "is_default",
        "is-fallback": "is_fallback",
        "tags": "tags",
        "groks": "groks",
        "mappings": "mappings",
        "plugins": "plugins",
    }

    @classmethod
    def load(cls, path, logger=None):
        if not logger:
            logger = logging.getLogger(cls.__name__)
        logger.debug("Reading templates catalog: %s" % path)
        data = read_yaml(path, logger, "templates catalog")
        if data is None:
            data = {}
        if not isinstance(data, dict) or not isinstance(data.get("templates", []), list):
            msg = "Templates catalog %s must contain a 'templates' list" % path
            logger.error(msg)
            raise ConfigError(msg)
        templates = []
        for entry in data.get("templates") or []:
            if not isinstance(entry, dict) or not entry.get("name"):
                msg = "Templates catalog %s has an entry without name: %r" % (path, entry)
                logger.error(msg)
                raise ConfigError(msg)
            kwargs = {}
            for key, value in entry.items():
                if key not in cls.Keys:
                    logger.warning("Ignoring unknown key '%s' in template '%s'" % (key, entry["name"]))
                elif value is not None:
                    if key in ("tags", "groks", "mappings", "plugins") and isinstance(value, str):
                        value = [value]
                    kwargs[cls.Keys[key]] = value
            templates.append(Template(**kwargs))
        return cls(templates, logger)

    def __init__(self, templates=[], logger=None):
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger
        self.templates = list(templates)

    def __iter__(self):
        return iter(self.templates)

    def get(self, name):
        for t in self.templates:
            if t.name == name:
                return t
        return None

    def defaults(self):
        return [t for t in self.templates if t.is_default]


def _parse_json(text, name, logger):
    if not text or not text.strip():
        return {}
    try:
        data = json.loads(text)
    except ValueError as e:
        msg = "Cannot parse %s: %s" % (name, str(e))
        logger.error(msg)
        raise ConfigError(msg)
    if not isinstance(data, dict):
        msg = "%s must be a JSON object" % name
        logger.error(msg)
        raise ConfigError(msg)
    return data


class VcapApplication(object):

    @classmethod
    def parse(cls, text, logger=None):
        if not logger:
            logger = logging.getLogger(cls.__name__)
        return cls(_parse_json(text, "VCAP_APPLICATION", logger))

    def __init__(self, data={}):
        self.app_id = data.get("application_id", "")
        self.name = data.get("application_name", "")
        self.uris = data.get("application_uris") or []
        self.version = data.get("application_version", "")
        self.cf_api = data.get("cf_api", "")
        self.limits = data.get("limits") or {}

    @property
    def memory_limit(self):
        """Container memory in MB, None when unknown"""
        try:
            return int(self.limits["mem"])
        except (KeyError, TypeError, ValueError):
            return None


class Service(object):

    def __init__(self, name, label="", tags=[], plan="", credentials={}):
        self.name = name
        self.label = label
        self.tags = list(tags)
        self.plan = plan
        self.credentials = credentials

    def __repr__(self):
        return "Service(%s, tags=%s)" % (self.name, self.tags)

    def has_any_tag(self, tags):
        wanted = set(t.lower() for t in tags)
        return any(t.lower() in wanted for t in self.tags)


class VcapServices(object):

    @classmethod
    def parse(cls, text, logger=None):
        if not logger:
            logger = logging.getLogger(cls.__name__)
        data = _parse_json(text, "VCAP_SERVICES", logger)
        services = []
        for label, instances in data.items():
            if not isinstance(instances, list):
                msg = "VCAP_SERVICES entry '%s' must be a list" % label
                logger.error(msg)
                raise ConfigError(msg)
            for s in instances:
                if not isinstance(s, dict):
                    msg = "VCAP_SERVICES entry '%s' must be a list of objects, got %r" % (label, s)
                    logger.error(msg)
                    raise ConfigError(msg)
                tags = s.get("tags") or []
                if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
                    msg = "VCAP_SERVICES instance '%s' must have a list of string tags" % s.get("name", "")
                    logger.error(msg)
                    raise ConfigError(msg)
                services.append(Service(
                    s.get("name", ""),
                    s.get("label", label),
                    tags,
                    s.get("plan", ""),
                    s.get("credentials") or {},
                ))
        return cls(services)

    def __init__(self, services=[]):
        self.services = list(services)

    def __iter__(self):
        return iter(self.services)

    def __len__(self):
        return len(self.services)

    def with_tags(self, tags):
        """Services carrying at least one of the tags, case insensitive"""
        return [s for s in self.services if s.has_any_tag(tags)]

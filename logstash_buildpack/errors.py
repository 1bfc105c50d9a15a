# -*- coding: utf-8 -*-
"""
Errors raised while staging. All of them abort the build.
"""


class BuildpackError(Exception):
    """Base class for staging errors."""


class ConfigError(BuildpackError):
    """Malformed Logstash file, catalog, manifest or VCAP_* data."""


class VersionResolutionError(BuildpackError):
    """No manifest entry matches the requested version."""


class ServiceBindingError(BuildpackError):
    """Zero or several services match a template."""


class MissingFileError(BuildpackError):
    """A required local file is not there."""


class CommandError(BuildpackError):

    def __init__(self, command, returncode, stderr=None):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr or []
        if isinstance(command, (list, tuple)):
            command = " ".join(str(c) for c in command)
        msg = "Command '%s' exited with code %s" % (command, returncode)
        if self.stderr:
            msg += ": %s" % " ".join(self.stderr)
        super().__init__(msg)

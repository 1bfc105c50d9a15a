# -*- coding: utf-8 -*-
"""
Process execution for the external tools (gte, logstash, keytool, ...).
Output is streamed to the staging log as it arrives.
"""
import sys
import os
import re
import errno
import pty
import logging

from select import select
from subprocess import Popen

from .errors import CommandError


class Runner(object):
    ansi_escape = re.compile(r'(?:\x1B[@-_]|[\x80-\x9F])[0-?]*[ -/]*[@-~]')

    def __init__(self, working_path=None, env={}, logger=None, echo=True):
        if not logger:
            logger = logging.getLogger(self.__class__.__name__)
        self.logger = logger
        self.working_path = working_path
        self.env = env
        self.echo = echo

    def _clean(self, line):
        return self.ansi_escape.sub('', line.decode('utf-8', 'replace').strip('\r'))

    def _emit(self, line, stream, prefix):
        self.logger.debug("%s%s" % (prefix, line))
        if self.echo:
            if prefix:
                print(prefix, line, file=stream, flush=True)
            else:
                print(line, file=stream, flush=True)

    def run(self, command, env={}, shell=False, prefix='', wpath=None):
        environ = os.environ.copy()
        environ.update({**self.env, **env})
        working_path = wpath if wpath is not None else self.working_path
        # stdout and stderr on separate terminals, tools only colorize on a tty
        masters, slaves = zip(pty.openpty(), pty.openpty())
        kwargs = dict(
            cwd = working_path,
            shell = shell,
            env = environ,
            stdin = slaves[0],
            stdout = slaves[0],
            stderr = slaves[1],
        )
        self.logger.debug("Running: %s" % (command,))
        try:
            proc = Popen(command, **kwargs)
        except OSError as e:
            for fd in masters + slaves:
                os.close(fd)
            self.logger.error("Cannot run %s: %s" % (command, str(e)))
            raise
        output = {masters[0]: [], masters[1]: []}
        pending = {masters[0]: b"", masters[1]: b""}
        streams = {masters[0]: sys.stdout, masters[1]: sys.stderr}
        try:
            with proc:
                for fd in slaves:
                    os.close(fd)
                readable = list(masters)
                while readable:
                    for fd in select(readable, [], [])[0]:
                        try:
                            data = os.read(fd, 1024)
                        except OSError as e:
                            if e.errno != errno.EIO:
                                self.logger.error("Cannot read from PTY: %s" % (str(e)))
                                raise
                            # EIO means EOF on linux
                            data = b""
                        if data:
                            lines = (pending[fd] + data).split(b"\n")
                            pending[fd] = lines.pop()
                        else:
                            readable.remove(fd)
                            lines = [pending[fd]] if pending[fd] else []
                            pending[fd] = b""
                        for line in lines:
                            line = self._clean(line)
                            output[fd].append(line)
                            self._emit(line, streams[fd], prefix)
        finally:
            for fd in masters:
                os.close(fd)
        return proc.returncode, output[masters[0]], output[masters[1]]

    def check(self, command, env={}, shell=False, prefix='', wpath=None):
        try:
            rc, out, err = self.run(command, env, shell, prefix, wpath)
        except OSError as e:
            raise CommandError(command, 127, [str(e)])
        if rc != 0:
            error = CommandError(command, rc, err)
            self.logger.error(str(error))
            raise error
        return out

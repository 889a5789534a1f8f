# coding=utf-8
"""This module turns the running process into a daemon.

The steps are taken in a fixed order:

1. drop privileges,
2. set the file creation mask,
3. fork and let the parent exit,
4. start a new session,
5. fork again and let the session leader exit,
6. change the working directory,
7. lock the pidfile,
8. close inherited descriptors and redirect the standard streams,
9. write the process id into the pidfile.

Errors before the first fork are raised to the caller. After the first
fork nobody is left to receive them, so the child logs the error and
exits with status 1.

The double fork follows “Advanced Programming in the Unix Environment”,
section 13.3, by W. Richard Stevens, published 1993 by Addison-Wesley.

This file is part of procdetach and is hereby released under the following
license terms.

Copyright 2013 Tobias Pöppke

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import os
import sys
from collections import namedtuple

from procdetach import credentials, exc, log, pidfile, redirect, util

LOG = log.get_logger("daemon")

DAEMON_CONFIG_FIELDS = [
    "name",
    "umask_value",
    "working_dir",
    "keep_descriptors",
    "skip_fd_management",
    "skip_output_tie",
    "privilege_target",
    "pidfile_path",
    "facility",
    "stdout_priority",
    "stderr_priority",
    "log_options",
    ]


def get_default_name():
    return os.path.basename(sys.argv[0]) or "procdetach"


class DaemonConfig(namedtuple("DaemonConfig", DAEMON_CONFIG_FIELDS)):
    """The settings for `daemonize`.

    `keep_descriptors` may hold descriptor numbers or objects with a
    ``fileno`` method; they are stored as numbers. With
    `skip_fd_management` nothing is closed or redirected and
    `keep_descriptors` is dropped.
    """
    def __new__(cls, name=None, umask_value=0, working_dir="/",
                keep_descriptors=(), skip_fd_management=False,
                skip_output_tie=False, privilege_target=None,
                pidfile_path=None, facility="daemon", stdout_priority="info",
                stderr_priority="err", log_options=()):
        if not name:
            name = get_default_name()
        if skip_fd_management:
            keep = frozenset()
        else:
            keep = frozenset(util.get_file_descriptor(fd)
                             for fd in keep_descriptors)
        return super(DaemonConfig, cls).__new__(
                cls, name, umask_value or 0, working_dir or "/", keep,
                bool(skip_fd_management), bool(skip_output_tie),
                privilege_target, pidfile_path or None, facility,
                stdout_priority, stderr_priority, frozenset(log_options))


class Daemonizer(object):
    FOREGROUND = "foreground"
    FIRST_CHILD = "first-child"
    SESSION_LEADER = "session-leader"
    FINAL_CHILD = "final-child"

    def __init__(self, config):
        super(Daemonizer, self).__init__()
        self.config = config
        self.state = self.FOREGROUND
        self.pidfile = None
        self.sink = None
        if not (config.skip_fd_management or config.skip_output_tie):
            self.sink = redirect.SyslogSink(
                            config.name, facility=config.facility,
                            stdout_priority=config.stdout_priority,
                            stderr_priority=config.stderr_priority,
                            options=config.log_options)

    def _fork_then_exit_parent(self, error_message):
        redirect.flush_standard_streams()
        try:
            pid = os.fork()
        except OSError as err:
            raise exc.ResourceError("%s: [%d] %s" % (
                            error_message, err.errno, err.strerror)) from err
        if pid > 0:
            LOG.debug("Forked child with pid %d", pid)
            os._exit(0)

    def _create_session(self):
        try:
            os.setsid()
        except OSError as err:
            raise exc.ResourceError(
                    "Unable to create a new session: %s" % err) from err

    def _change_working_directory(self):
        try:
            os.chdir(self.config.working_dir)
        except OSError as err:
            LOG.warning("Unable to change working directory to '%s': %s",
                        self.config.working_dir, err)

    def _get_keep_descriptors(self):
        keep = set(self.config.keep_descriptors)
        if self.pidfile is not None:
            keep.add(self.pidfile.fd)
        return keep

    def _detach(self):
        self._create_session()
        self.state = self.SESSION_LEADER

        self._fork_then_exit_parent("Failed second fork")
        self.state = self.FINAL_CHILD

        self._change_working_directory()

        if self.config.pidfile_path:
            self.pidfile = pidfile.acquire(self.config.pidfile_path)

        if not self.config.skip_fd_management:
            redirect.redirect(self._get_keep_descriptors(),
                              tie_sink=not self.config.skip_output_tie,
                              sink=self.sink)

        if self.pidfile is not None:
            pidfile.write_pid(self.pidfile)

    def daemonize(self):
        """ Detach the process and return the locked pidfile handle.

            Only the final daemon process returns from this call. The
            returned handle is ``None`` if no pidfile was configured.

            Must be called while the process is still single-threaded.
            """
        target = self.config.privilege_target
        if target is not None:
            credentials.drop(target)

        os.umask(self.config.umask_value)

        self._fork_then_exit_parent("Failed first fork")
        self.state = self.FIRST_CHILD

        try:
            self._detach()
        except exc.DaemonError as err:
            LOG.error("Daemonizing %s failed: %s", self.config.name, err)
            os._exit(1)
        except Exception:
            LOG.exception("Daemonizing %s failed", self.config.name)
            os._exit(1)

        LOG.debug("%s is running as daemon with pid %d", self.config.name,
                  os.getpid())
        return self.pidfile


def daemonize(config):
    """Daemonize the process as described by config."""
    return Daemonizer(config).daemonize()

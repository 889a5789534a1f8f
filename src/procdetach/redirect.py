# coding=utf-8
"""This module closes inherited descriptors and redirects the standard
streams of a daemon.

Standard input is always reopened from the null device. Standard output
and standard error are tied to a syslog sink if possible and fall back to
the null device otherwise.

Closing a descriptor does not invalidate Python objects that still refer
to it. Such objects stay usable, but once the descriptor number is reused
they read from or write to whatever now occupies that number, e.g.
``sys.stdout`` writes into the log sink after `redirect`.

The functions in this module are based on python-daemon
by Ben Finney <ben+python@benfinney.id.au>.

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
import errno
import resource

from procdetach import exc, log, command

LOG = log.get_logger("redirect")

MAXFD = 2048

STANDARD_FDS = (0, 1, 2)

FACILITIES = frozenset([
    "auth", "authpriv", "cron", "daemon", "ftp", "kern", "lpr", "mail",
    "news", "syslog", "user", "uucp", "local0", "local1", "local2",
    "local3", "local4", "local5", "local6", "local7"])

PRIORITIES = frozenset([
    "emerg", "alert", "crit", "err", "warning", "notice", "info", "debug"])

# Log options and the matching logger flags.
LOG_OPTIONS = {
    "pid": "-i",
    "perror": "-s",
}


class SyslogSink(object):
    """Sends standard output and standard error to syslog.

    Each stream is a pipe read by a ``logger`` process with its own
    priority. The processes exit once the last writer of their pipe is
    gone.
    """
    def __init__(self, name, facility="daemon", stdout_priority="info",
                 stderr_priority="err", options=(), logger_cmd="logger"):
        super(SyslogSink, self).__init__()
        if facility not in FACILITIES:
            raise ValueError("Unknown syslog facility: %s" % facility)
        for priority in (stdout_priority, stderr_priority):
            if priority not in PRIORITIES:
                raise ValueError("Unknown syslog priority: %s" % priority)
        unknown = set(options) - set(LOG_OPTIONS)
        if unknown:
            raise ValueError("Unknown log options: %s" %
                             ", ".join(sorted(unknown)))
        self.name = name
        self.facility = facility
        self.stdout_priority = stdout_priority
        self.stderr_priority = stderr_priority
        self.options = frozenset(options)
        self.command = command.Command(logger_cmd)
        self.processes = []

    def get_args(self, priority):
        args = ["-t", self.name, "-p", "%s.%s" % (self.facility, priority)]
        args.extend(LOG_OPTIONS[option] for option in sorted(self.options))
        return args

    def _open_stream(self, priority):
        read_fd, write_fd = os.pipe()
        try:
            proc = self.command.spawn(*self.get_args(priority), stdin=read_fd)
        except OSError as err:
            os.close(write_fd)
            raise exc.SinkUnavailableError(
                    "Cannot start '%s': %s" % (self.command.cmd, err)) from err
        finally:
            os.close(read_fd)
        self.processes.append(proc)
        return write_fd

    def open(self):
        """ Start the sink.

            Returns a tuple of writable descriptors for standard output and
            standard error. Raises `SinkUnavailableError` if the sink cannot
            be started.
            """
        out_fd = self._open_stream(self.stdout_priority)
        try:
            err_fd = self._open_stream(self.stderr_priority)
        except exc.SinkUnavailableError:
            os.close(out_fd)
            raise
        return out_fd, err_fd


def get_maximum_file_descriptors():
    """ Get the maximum number of open file descriptors for this process.

        The maximum is the process hard resource limit of maximum number of
        open file descriptors. If the limit is “infinity”, a default value
        of ``MAXFD`` is returned.
        """
    __, hard_limit = resource.getrlimit(resource.RLIMIT_NOFILE)
    if hard_limit == resource.RLIM_INFINITY:
        return MAXFD
    return hard_limit


def get_candidate_ranges(keep, maxfd):
    """ Get the ranges of descriptors below `maxfd` that are not in `keep`.

        Each range is a tuple (`low`, `high`) suitable for `os.closerange`.
        """
    ranges = []
    start = 0
    for keep_fd in sorted(keep):
        if keep_fd >= maxfd:
            break
        if keep_fd < start:
            continue
        if keep_fd != start:
            ranges.append((start, keep_fd))
        start = keep_fd + 1
    if start < maxfd:
        ranges.append((start, maxfd))
    return ranges


def close_open_files(keep=()):
    """Close every open descriptor of this process except those in keep."""
    ranges = get_candidate_ranges(set(keep), get_maximum_file_descriptors())
    for low, high in ranges:
        os.closerange(low, high)


def flush_standard_streams():
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (AttributeError, ValueError, OSError):
            continue


def _open_null():
    try:
        return os.open(os.devnull, os.O_RDWR)
    except OSError as err:
        if err.errno in (errno.EMFILE, errno.ENFILE):
            raise exc.ResourceError(
                    "Cannot open %s: %s" % (os.devnull, err)) from err
        raise exc.DaemonIOError(
                "Cannot open %s: %s" % (os.devnull, err)) from err


def _replace_fd(source_fd, target_fd):
    if source_fd == target_fd:
        return
    os.dup2(source_fd, target_fd)


def redirect(keep=(), tie_sink=True, sink=None):
    """ Close all descriptors not in `keep` and redirect the standard
        streams.

        Standard input, output and error are first pointed at the null
        device. If `tie_sink` is true and a `sink` is given, standard
        output and standard error are then tied to the sink. A sink that
        cannot be started is not an error, the streams stay on the null
        device in that case.
        """
    keep = set(keep)
    flush_standard_streams()
    close_open_files(keep)

    null_fd = _open_null()
    for fd in STANDARD_FDS:
        _replace_fd(null_fd, fd)
    if null_fd not in STANDARD_FDS:
        os.close(null_fd)

    if not tie_sink or sink is None:
        LOG.debug("Standard streams redirected to %s", os.devnull)
        return

    try:
        out_fd, err_fd = sink.open()
    except exc.SinkUnavailableError as err:
        LOG.debug("Log sink unavailable, using %s: %s", os.devnull, err)
        return

    _replace_fd(out_fd, 1)
    _replace_fd(err_fd, 2)
    for fd in (out_fd, err_fd):
        if fd not in STANDARD_FDS:
            os.close(fd)
    LOG.debug("Standard streams tied to syslog facility '%s'", sink.facility)

# coding=utf-8
"""This module provides the locked pidfile that enforces a single instance.

The lock is an exclusive ``flock`` on an open descriptor of the pidfile.
It is held for as long as the descriptor stays open, so the descriptor is
never closed by procdetach. It is created inheritable and survives the
replacement of the process image on restart.

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
import errno
import fcntl

from procdetach import exc, log

LOG = log.get_logger("pidfile")

PIDFILE_MODE = 0o644

# Descriptors of the pidfiles held before a restart, comma separated.
INHERITED_FD_ENV = "PROCDETACH_PIDFILE_FD"

_held = []


class PidfileHandle(object):
    def __init__(self, path, fd, inheritable=True):
        super(PidfileHandle, self).__init__()
        self.path = path
        self.fd = fd
        self.inheritable = inheritable

    def fileno(self):
        return self.fd

    def set_inheritable(self, inheritable=True):
        os.set_inheritable(self.fd, inheritable)
        self.inheritable = inheritable

    def write_pid(self, pid=None):
        write_pid(self, pid)

    def __repr__(self):
        return "<PidfileHandle %s fd=%d>" % (self.path, self.fd)


def held_handles():
    return list(_held)


def _same_file(fd, path):
    try:
        fd_stat = os.fstat(fd)
        path_stat = os.stat(path)
    except OSError:
        return False
    return (fd_stat.st_dev, fd_stat.st_ino) == (path_stat.st_dev,
                                                path_stat.st_ino)


def _inherited_fds():
    value = os.environ.get(INHERITED_FD_ENV, "")
    fds = []
    for item in value.split(","):
        try:
            fds.append(int(item))
        except ValueError:
            continue
    return fds


def _adopt_inherited(path):
    for handle in _held:
        if _same_file(handle.fd, path):
            return handle

    for fd in _inherited_fds():
        if _same_file(fd, path):
            LOG.debug("Adopting inherited pidfile descriptor %d for '%s'",
                      fd, path)
            handle = PidfileHandle(path, fd, os.get_inheritable(fd))
            _held.append(handle)
            return handle
    return None


def _open(path):
    try:
        return os.open(path, os.O_WRONLY | os.O_CREAT, PIDFILE_MODE)
    except OSError as err:
        if err.errno in (errno.EACCES, errno.EPERM, errno.EROFS):
            raise exc.PermissionDeniedError(
                    "Cannot create pidfile '%s': %s" % (path, err)) from err
        if err.errno in (errno.EMFILE, errno.ENFILE):
            raise exc.ResourceError(
                    "Cannot open pidfile '%s': %s" % (path, err)) from err
        raise exc.DaemonIOError(
                "Cannot open pidfile '%s': %s" % (path, err)) from err


def _move_above_standard_fds(fd, path):
    # Descriptors 0 to 2 are overwritten when the standard streams are
    # redirected, which would close the description holding the lock.
    if fd > 2:
        return fd
    try:
        new_fd = fcntl.fcntl(fd, fcntl.F_DUPFD, 3)
    except OSError as err:
        if err.errno in (errno.EMFILE, errno.ENFILE):
            raise exc.ResourceError(
                    "Cannot move pidfile descriptor for '%s': %s" %
                    (path, err)) from err
        raise exc.DaemonIOError(
                "Cannot move pidfile descriptor for '%s': %s" %
                (path, err)) from err
    finally:
        os.close(fd)
    return new_fd


def _lock(fd, path):
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError as err:
        os.close(fd)
        if err.errno in (errno.EWOULDBLOCK, errno.EAGAIN, errno.EACCES):
            raise exc.LockHeldError(
                    "The pidfile '%s' is locked by another instance." % path,
                    path) from err
        raise exc.DaemonIOError(
                "Cannot lock pidfile '%s': %s" % (path, err)) from err


def acquire(path):
    """ Open the pidfile at `path` and lock it exclusively.

        The lock is taken without waiting. If another process holds it,
        `LockHeldError` is raised and the file content is left alone.
        The process id is not written here, see `write_pid`.

        If this process already holds the lock, for example because it was
        passed over by a restart, the existing handle is returned.
        """
    handle = _adopt_inherited(path)
    if handle is not None:
        return handle

    fd = _move_above_standard_fds(_open(path), path)
    _lock(fd, path)
    handle = PidfileHandle(path, fd, inheritable=False)
    handle.set_inheritable(True)
    _held.append(handle)
    LOG.debug("Locked pidfile '%s' with descriptor %d", path, fd)
    return handle


def write_pid(handle, pid=None):
    """Replace the content of the locked pidfile with the process id."""
    if pid is None:
        pid = os.getpid()
    data = ("%d\n" % pid).encode("ascii")
    try:
        os.ftruncate(handle.fd, 0)
        os.lseek(handle.fd, 0, os.SEEK_SET)
        os.write(handle.fd, data)
        os.fsync(handle.fd)
    except OSError as err:
        raise exc.DaemonIOError("Cannot write pidfile '%s': %s" %
                                (handle.path, err)) from err
    LOG.debug("Wrote pid %d to '%s'", pid, handle.path)

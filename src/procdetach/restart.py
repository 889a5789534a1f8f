# coding=utf-8
"""This module restarts the daemon by replacing its process image.

The process keeps its pid and its descriptor table, so the locked pidfile
descriptor is passed over to the new image and the lock is never released.
The new image finds the descriptor through the environment, see
`procdetach.pidfile.acquire`.

The command line is recorded when this module is imported, before the
program had a chance to change ``sys.argv``.

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

from procdetach import exc, log, pidfile, redirect, signals

LOG = log.get_logger("restart")

ORIGINAL_EXECUTABLE = sys.executable
ORIGINAL_ARGV = list(getattr(sys, "orig_argv", None) or
                     [sys.executable] + sys.argv)

RESTARTED_ENV = "PROCDETACH_RESTARTED"


def is_restarted():
    """Tell whether this image was started by `restart`."""
    return os.environ.get(RESTARTED_ENV) == "1"


class RestartManager(object):
    def __init__(self, mask_manager=None):
        super(RestartManager, self).__init__()
        if mask_manager is None:
            mask_manager = signals.MASK_MANAGER
        self.mask_manager = mask_manager

    def _prepare(self):
        handles = pidfile.held_handles()
        for handle in handles:
            if not handle.inheritable:
                handle.set_inheritable(True)
        if handles:
            os.environ[pidfile.INHERITED_FD_ENV] = ",".join(
                                        str(handle.fd) for handle in handles)
        else:
            os.environ.pop(pidfile.INHERITED_FD_ENV, None)

        self.mask_manager.unmask_all()
        redirect.flush_standard_streams()

    def replace(self, argv):
        """ Replace the process image with the program in `argv`.

            The program is searched in ``PATH``. Does not return on
            success. Raises `RestartError` if the image could not be
            replaced.
            """
        argv = list(argv)
        if not argv:
            raise ValueError("No program given.")
        self._prepare()
        LOG.debug("Replacing process image with %s", argv)
        try:
            os.execvp(argv[0], argv)
        except OSError as err:
            raise exc.RestartError("Cannot execute '%s': %s" %
                                   (argv[0], err)) from err

    def restart(self, args=None):
        """ Restart the current program in place.

            Without `args` the program is started with the command line it
            was originally started with. Otherwise `args` is used like
            ``sys.argv``, the script coming first.

            Does not return on success.
            """
        if args is None:
            argv = list(ORIGINAL_ARGV)
        else:
            argv = [ORIGINAL_EXECUTABLE] + list(args)

        self._prepare()
        os.environ[RESTARTED_ENV] = "1"
        LOG.info("Restarting: %s", " ".join(argv))
        try:
            os.execv(ORIGINAL_EXECUTABLE, argv)
        except OSError as err:
            del os.environ[RESTARTED_ENV]
            raise exc.RestartError("Cannot restart '%s': %s" %
                                   (ORIGINAL_EXECUTABLE, err)) from err


_manager = RestartManager()


def restart(args=None):
    _manager.restart(args)


def replace(argv):
    _manager.replace(argv)

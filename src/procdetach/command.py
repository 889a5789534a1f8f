# coding=utf-8
"""
This module provides a class for executing system commands.

It wraps the subprocess module for convenience.

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


import subprocess

from procdetach import log

LOG = log.get_logger("command")


class Command(object):
    def __init__(self, cmd):
        super(Command, self).__init__()
        self.cmd = cmd

    def get_command_list(self, *args):
        command_list = []
        command_list.append(self.cmd)
        command_list.extend(args)
        return command_list

    def spawn(self, *args, stdin=None, **kw):
        """ Start the command reading from `stdin` without waiting for it.

            Output of the command goes to the null device. The command
            inherits no descriptors besides its standard streams.
            """
        command_list = self.get_command_list(*args)
        LOG.debug("Spawning: %s", command_list)

        proc = subprocess.Popen(command_list, stdin=stdin,
                                stdout=subprocess.DEVNULL,
                                stderr=subprocess.DEVNULL,
                                close_fds=True, **kw)
        LOG.debug("Process creation successful.")
        return proc

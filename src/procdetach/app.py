# coding=utf-8
"""
This module contains the command line interface.

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

import logging

from cement import App, Controller, ex
from cement.core.exc import CaughtSignal

from procdetach import VERSION, config, daemon, exc, log, restart

LOG = log.get_logger("app")

RUN_ARGS = config.get_args() + [
    (["program"], dict(nargs="+", metavar="program",
                       help="The program to run as daemon and its arguments."))
    ]


class BaseController(Controller):
    class Meta:
        label = "base"
        description = ("procdetach runs a program as daemon.\n\n"
                "To start a program type:\n"
                "    procdetach run [options] -- <program> [<args>]")
        arguments = [
            (["-v", "--version"], dict(action="version",
                                       version="procdetach %s" % VERSION)),
            ]

    def _default(self):
        self.app.args.print_help()

    @ex(help="Detach from the terminal and run the program as daemon",
        arguments=RUN_ARGS)
    def run(self):
        program = list(self.app.pargs.program)
        if program and program[0] == "--":
            program = program[1:]
        if not program:
            self.app.log.error("No program given.")
            self.app.exit_code = 1
            return

        configmgr = self.app.configmanager
        try:
            daemon_config = configmgr.get_daemon_config(program[0])
            # Fails early if the sink settings are invalid.
            daemonizer = daemon.Daemonizer(daemon_config)
        except (ValueError, TypeError) as err:
            self.app.log.error("Invalid configuration: %s" % err)
            self.app.exit_code = 1
            return

        try:
            daemonizer.daemonize()
        except exc.DaemonError as err:
            self.app.log.error("Could not start the daemon: %s" % err)
            self.app.exit_code = 1
            return

        try:
            restart.replace(program)
        except exc.RestartError as err:
            LOG.error("%s", err)
            self.app.exit_code = 1


def _setup_log_level(app):
    if app.debug:
        log.set_level(logging.DEBUG)


class ProcDetachApp(App):
    class Meta:
        label = "procdetach"
        config_defaults = config.get_default_config()
        config_section = config.SECTION
        config_files = config.CONFIG_FILES
        exit_on_close = True
        handlers = [BaseController]
        hooks = [("post_argument_parsing", _setup_log_level)]

    def __init__(self, *args, **kw):
        super(ProcDetachApp, self).__init__(*args, **kw)
        self.configmanager = None

    def setup(self):
        super(ProcDetachApp, self).setup()
        self._setup_config_manager()

    def _setup_config_manager(self):
        self.configmanager = config.ConfigManager(self)


def main():
    with ProcDetachApp() as app:
        try:
            app.run()
        except CaughtSignal as err:
            LOG.info("Caught signal %s, exiting." % err.signum)
            app.exit_code = 1


if __name__ == "__main__":
    main()

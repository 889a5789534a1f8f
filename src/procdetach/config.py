# coding=utf-8
"""The configuration module for procdetach.

All configuration options are defined here. Each option can be set in the
``[procdetach]`` section of a configuration file and overridden on the
command line.

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
import configparser

from cement import init_defaults

from procdetach import credentials, daemon, log, util

LOG = log.get_logger("config")

SECTION = "procdetach"

CONFIG_FILES = [
    "/etc/procdetach/procdetach.conf",
    os.path.expanduser("~/.procdetach/procdetach.conf"),
    ]


class Option(object):

    OPTIONS = {}

    def __init__(self, name, sanitizer=str, short_name=None, section=SECTION,
                 default=None, **opts):
        super(Option, self).__init__()
        self.name = name
        self.short_name = short_name
        self.section = section
        self.sanitizer = sanitizer
        self._default = default
        self.opts = opts

    @property
    def default(self):
        if self._default is not None:
            return self._default
        else:
            return ''

    def add_def_dict(self, def_dict):
        sect = def_dict.get(self.section, dict())
        sect[self.name] = self.default
        def_dict[self.section] = sect

    def get_arg(self):
        arg_names = ["--%s" % self.name.replace("_", "-")]
        if self.short_name is not None and len(self.short_name) == 1:
            arg_names.append("-%s" % self.short_name)

        # Arguments default to None, so that an option which is not given
        # on the command line does not hide the value from the config files.
        opts = dict(self.opts, dest=self.name, default=None)
        return arg_names, opts

    def sanitize(self, value):
        if value is None or value == '':
            value = self.default
        return self.sanitizer(value)


options = Option.OPTIONS


def register_option(name, short_name=None, section=SECTION, **kw):
    options[name] = Option(name=name, short_name=short_name,
                           section=section, **kw)


def get_args():
    return [option.get_arg() for option in options.values()]


def get_default_config():
    """Collect the default values for a new configuration.

    Returns a dictionary with the default configuration data.

    """
    def_dict = init_defaults(SECTION)
    for option in options.values():
        option.add_def_dict(def_dict)
    return def_dict


class ConfigManager(object):
    def __init__(self, app_obj):
        self.app = app_obj

    def _get_raw(self, option):
        pargs = getattr(self.app, "pargs", None)
        value = getattr(pargs, option.name, None)
        if value is not None:
            return value
        try:
            return self.app.config.get(option.section, option.name)
        except (KeyError, configparser.Error):
            LOG.debug("Option '%s.%s' not found in the configuration",
                      option.section, option.name)
            return None

    def get_option(self, optionname):
        option = options[optionname]
        return option.sanitize(self._get_raw(option))

    def get_credentials(self):
        return credentials.resolve(self.get_option("user"),
                                   self.get_option("group"),
                                   self.get_option("effective_only"))

    def get_daemon_config(self, program=None):
        """Build the daemon configuration from the config files and the
        command line arguments.

        Without a configured name the daemon is named after `program`.
        """
        name = self.get_option("name")
        if not name and program:
            name = os.path.basename(program)
        return daemon.DaemonConfig(
                name=name,
                umask_value=self.get_option("umask"),
                working_dir=self.get_option("workdir"),
                keep_descriptors=self.get_option("keep_fds"),
                skip_fd_management=self.get_option("no_fd_management"),
                skip_output_tie=self.get_option("no_output_tie"),
                privilege_target=self.get_credentials(),
                pidfile_path=self.get_option("pidfile"),
                facility=self.get_option("facility"),
                stdout_priority=self.get_option("stdout_priority"),
                stderr_priority=self.get_option("stderr_priority"),
                log_options=self.get_option("log_options"))


register_option(name="pidfile", sanitizer=util.safe_path, short_name="p",
            action="store", metavar="<path>", help=("Lock this file and "
            "write the process id of the daemon into it."))


register_option(name="workdir", sanitizer=util.safe_path, short_name="c",
            action="store", default="/", metavar="<path>",
            help="Change into this directory. Default: /")


register_option(name="umask", sanitizer=util.parse_umask, short_name="m",
            action="store", default="0", metavar="<mask>",
            help="The octal file creation mask. Default: 0")


register_option(name="keep_fds", sanitizer=util.parse_fd_list,
            action="store", metavar="<fds>", help=("Comma separated "
            "descriptor numbers which are not closed."))


register_option(name="no_fd_management", sanitizer=util.parse_bool,
            action="store_true", help=("Neither close descriptors nor "
            "redirect the standard streams."))


register_option(name="no_output_tie", sanitizer=util.parse_bool,
            action="store_true", help=("Redirect standard output and "
            "standard error to the null device instead of syslog."))


register_option(name="user", sanitizer=str, short_name="u",
            action="store", metavar="<user>",
            help="Run as this user (name or uid).")


register_option(name="group", sanitizer=str, short_name="g",
            action="store", metavar="<group>", help=("Run as this group "
            "(name or gid). Default: the primary group of the user"))


register_option(name="effective_only", sanitizer=util.parse_bool,
            action="store_true", help=("Only change the effective user and "
            "group, keep the real ones."))


register_option(name="name", sanitizer=str, short_name="n",
            action="store", metavar="<name>", help=("The name used to tag "
            "syslog messages. Default: the name of the program"))


register_option(name="facility", sanitizer=str, action="store",
            default="daemon", metavar="<facility>",
            help="The syslog facility. Default: daemon")


register_option(name="stdout_priority", sanitizer=str, action="store",
            default="info", metavar="<priority>",
            help="The syslog priority of standard output. Default: info")


register_option(name="stderr_priority", sanitizer=str, action="store",
            default="err", metavar="<priority>",
            help="The syslog priority of standard error. Default: err")


register_option(name="log_options", sanitizer=util.parse_word_list,
            action="store", metavar="<options>", help=("Comma separated "
            "syslog options: pid, perror."))

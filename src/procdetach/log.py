# coding=utf-8
"""This module provides the logging facilities of procdetach.

All loggers live below the ``procdetach`` logger, which writes plain
messages to the standard error stream. After daemonizing, standard error
refers to the log sink or the null device, so messages follow the
redirection.

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

ROOT_NAME = "procdetach"

ROOTLOG = logging.getLogger(ROOT_NAME)
ROOTLOG.setLevel(logging.INFO)

formatter = logging.Formatter("%(message)s")


def _setup_console_handler():
    # sys.stderr writes to descriptor 2, so the handler keeps working
    # after the descriptor has been redirected.
    if ROOTLOG.handlers:
        return
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    ROOTLOG.addHandler(console)


def get_logger(name):
    """Returns the logger for name with proper console format."""
    _setup_console_handler()
    return logging.getLogger("%s.%s" % (ROOT_NAME, name))


def set_level(level):
    ROOTLOG.setLevel(level)

# coding=utf-8
"""This module contains the procdetach exception classes.

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


class DaemonError(Exception):
    """General exception class."""


class PermissionDeniedError(DaemonError):
    """Raised if the process lacks the rights to perform an operation,
    e.g. assuming another identity or creating the pidfile."""


class ResourceError(DaemonError):
    """Raised if the operating system ran out of a resource, e.g. if a
    fork failed."""


class LockHeldError(DaemonError):
    """Raised if the pidfile is already locked by another instance."""
    def __init__(self, message, path):
        super(LockHeldError, self).__init__(message)
        self.path = path


class DaemonIOError(DaemonError):
    """Raised if a file operation needed for daemonizing failed."""


class SinkUnavailableError(DaemonError):
    """Raised if the log sink could not be set up."""


class RestartError(DaemonError):
    """Raised if the process image could not be replaced."""

# coding=utf-8
"""
This module provides several utility functions.

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
import re

TRUE_STRINGS = ("true", "1", "yes", "on")


def safe_path(path):
    if not path:
        return ""
    userpath = os.path.normpath(os.path.expanduser(path))
    if userpath == ".":
        userpath = ""
    return userpath


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_STRINGS


def parse_umask(value):
    """Parse a file creation mask given as an octal string or an integer."""
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        mask = value
    else:
        mask = int(str(value).strip(), 8)
    if not 0 <= mask <= 0o777:
        raise ValueError("Invalid umask: %r" % value)
    return mask


def parse_fd_list(value):
    """Parse a comma or whitespace separated list of descriptor numbers."""
    if not value:
        return set()
    if isinstance(value, (list, tuple, set, frozenset)):
        return set(int(fd) for fd in value)
    return set(int(fd) for fd in re.split(r"[,\s]+", str(value).strip())
               if fd)


def parse_word_list(value):
    if not value:
        return frozenset()
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(value)
    return frozenset(word for word in re.split(r"[,\s]+", str(value).strip())
                     if word)


def get_file_descriptor(obj):
    """ Get the file descriptor of obj.

        `obj` is either a descriptor number or an object with a
        ``fileno`` method, such as an open file or a socket.

        Raises `TypeError` if no descriptor can be determined.
        """
    if isinstance(obj, bool):
        raise TypeError("not a file descriptor: %r" % (obj,))
    if isinstance(obj, int):
        return obj
    try:
        return obj.fileno()
    except (AttributeError, ValueError):
        raise TypeError("not a file descriptor: %r" % (obj,))

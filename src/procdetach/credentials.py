# coding=utf-8
"""This module changes the user and group identity of the process.

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
import pwd
import grp
from collections import namedtuple

from procdetach import exc, log

LOG = log.get_logger("credentials")


class Credentials(namedtuple("Credentials", "uid gid effective_only")):
    """The identity to assume.

    With `effective_only` only the effective ids are changed and the real
    ids stay as they are.
    """
    def __new__(cls, uid, gid, effective_only=False):
        return super(Credentials, cls).__new__(cls, uid, gid, effective_only)


def _lookup_uid(user):
    try:
        return int(user)
    except ValueError:
        pass
    try:
        return pwd.getpwnam(user).pw_uid
    except KeyError:
        raise ValueError("Unknown user: %s" % user)


def _lookup_gid(group):
    try:
        return int(group)
    except ValueError:
        pass
    try:
        return grp.getgrnam(group).gr_gid
    except KeyError:
        raise ValueError("Unknown group: %s" % group)


def resolve(user=None, group=None, effective_only=False):
    """ Build the credentials for the given user and group.

        Both may be names or numeric ids. A missing group defaults to the
        primary group of the user, a missing user to the current one.
        Returns ``None`` if neither is given.
        """
    if not user and not group:
        return None

    if user:
        uid = _lookup_uid(user)
    else:
        uid = os.geteuid() if effective_only else os.getuid()

    if group:
        gid = _lookup_gid(group)
    elif user:
        try:
            gid = pwd.getpwuid(uid).pw_gid
        except KeyError:
            raise ValueError("No primary group for uid %d" % uid)
    else:
        gid = os.getegid() if effective_only else os.getgid()

    return Credentials(uid, gid, effective_only)


def get_target_groups(target):
    """ Get the supplementary groups for `target`.

        These are the groups of the user owning ``target.uid`` plus
        ``target.gid``. A uid without a user entry gets ``target.gid``
        only.
        """
    try:
        username = pwd.getpwuid(target.uid).pw_name
    except KeyError:
        return [target.gid]
    return os.getgrouplist(username, target.gid)


def _set_groups(groups):
    try:
        os.setgroups(groups)
    except OSError as err:
        raise exc.PermissionDeniedError(
                "Unable to change supplementary groups to %s: %s" %
                (groups, err)) from err


def _restore(set_gid, old_gid, old_groups):
    try:
        set_gid(old_gid)
    except OSError as err:
        LOG.error("Could not restore group %d: %s", old_gid, err)
    if old_groups is None:
        return
    try:
        os.setgroups(old_groups)
    except OSError as err:
        LOG.error("Could not restore supplementary groups %s: %s",
                  old_groups, err)


def drop(target):
    """ Assume the identity described by `target`.

        The groups are changed before the user, because the user change can
        take away the right to change the groups. If a later step fails,
        the previous groups are restored, so that a failed drop leaves the
        identity as it was.

        A full drop also replaces the supplementary groups with those of
        the target user. An effective-only drop leaves them alone.
        """
    if target.effective_only:
        set_gid, set_uid = os.setegid, os.seteuid
        old_gid = os.getegid()
        old_groups = None
    else:
        set_gid, set_uid = os.setgid, os.setuid
        old_gid = os.getgid()
        old_groups = os.getgroups()

    LOG.debug("Changing %s identity to uid %d, gid %d",
              "effective" if target.effective_only else "real and effective",
              target.uid, target.gid)

    changed_groups = None
    if old_groups is not None:
        groups = get_target_groups(target)
        # Unprivileged processes cannot call setgroups, skip it when
        # nothing would change.
        if set(groups) - {target.gid} != set(old_groups) - {target.gid}:
            _set_groups(groups)
            changed_groups = old_groups

    try:
        set_gid(target.gid)
    except OSError as err:
        _restore(set_gid, old_gid, changed_groups)
        raise exc.PermissionDeniedError(
                "Unable to change group to %d: %s" % (target.gid, err)) from err

    try:
        set_uid(target.uid)
    except OSError as err:
        _restore(set_gid, old_gid, changed_groups)
        raise exc.PermissionDeniedError(
                "Unable to change user to %d: %s" % (target.uid, err)) from err

"""Tests for changing the process identity."""

import errno
import json
import os
import subprocess
import sys
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from procdetach import credentials, exc
from procdetach.credentials import Credentials

from conftest import child_env


def _recorder(calls, name, side_effect=None):
    def record(value):
        calls.append((name, value))
        if side_effect is not None and side_effect(value):
            raise OSError(errno.EPERM, "Operation not permitted")
    return record


class TestDrop:

    @pytest.fixture(autouse=True)
    def groups(self):
        """Supplementary groups are already those of the target."""
        with patch("os.getgroups", return_value=[100, 20]), \
                patch("os.setgroups") as setgroups, \
                patch.object(credentials, "get_target_groups",
                             return_value=[100, 20]) as target_groups:
            yield SimpleNamespace(setgroups=setgroups,
                                  target_groups=target_groups)

    def test_full_drop_sets_group_before_user(self, groups):
        calls = []
        with patch("os.getgid", return_value=50), \
                patch("os.setgid", side_effect=_recorder(calls, "setgid")), \
                patch("os.setuid", side_effect=_recorder(calls, "setuid")):
            credentials.drop(Credentials(1000, 100))

        assert calls == [("setgid", 100), ("setuid", 1000)]
        assert not groups.setgroups.called

    def test_full_drop_replaces_supplementary_groups(self, groups):
        calls = []
        groups.target_groups.return_value = [100, 33]
        groups.setgroups.side_effect = _recorder(calls, "setgroups")
        with patch("os.getgroups", return_value=[0, 4, 27]), \
                patch("os.getgid", return_value=0), \
                patch("os.setgid", side_effect=_recorder(calls, "setgid")), \
                patch("os.setuid", side_effect=_recorder(calls, "setuid")):
            credentials.drop(Credentials(1000, 100))

        assert calls == [("setgroups", [100, 33]), ("setgid", 100),
                         ("setuid", 1000)]

    def test_supplementary_groups_failure(self, groups):
        groups.target_groups.return_value = [100]
        groups.setgroups.side_effect = OSError(errno.EPERM, "no")
        with patch("os.getgid", return_value=50), \
                patch("os.setgid") as setgid, patch("os.setuid") as setuid:
            with pytest.raises(exc.PermissionDeniedError):
                credentials.drop(Credentials(1000, 100))

        assert not setgid.called
        assert not setuid.called

    def test_user_failure_restores_supplementary_groups(self, groups):
        calls = []
        groups.target_groups.return_value = [100]
        groups.setgroups.side_effect = _recorder(calls, "setgroups")
        with patch("os.getgroups", return_value=[0, 4]), \
                patch("os.getgid", return_value=0), \
                patch("os.setgid", side_effect=_recorder(calls, "setgid")), \
                patch("os.setuid", side_effect=_recorder(
                        calls, "setuid", lambda uid: True)):
            with pytest.raises(exc.PermissionDeniedError):
                credentials.drop(Credentials(1000, 100))

        assert calls == [("setgroups", [100]), ("setgid", 100),
                         ("setuid", 1000), ("setgid", 0),
                         ("setgroups", [0, 4])]

    def test_effective_drop_leaves_real_ids(self):
        calls = []
        with patch("os.getegid", return_value=50), \
                patch("os.setegid", side_effect=_recorder(calls, "setegid")), \
                patch("os.seteuid", side_effect=_recorder(calls, "seteuid")), \
                patch("os.setgid") as setgid, patch("os.setuid") as setuid:
            credentials.drop(Credentials(1000, 100, effective_only=True))

        assert calls == [("setegid", 100), ("seteuid", 1000)]
        assert not setgid.called
        assert not setuid.called

    def test_group_failure(self):
        with patch("os.getgid", return_value=50), \
                patch("os.setgid", side_effect=OSError(errno.EPERM, "no")), \
                patch("os.setuid") as setuid:
            with pytest.raises(exc.PermissionDeniedError):
                credentials.drop(Credentials(1000, 100))

        assert not setuid.called

    def test_user_failure_restores_group(self):
        calls = []
        with patch("os.getgid", return_value=50), \
                patch("os.setgid", side_effect=_recorder(calls, "setgid")), \
                patch("os.setuid", side_effect=_recorder(
                        calls, "setuid", lambda uid: True)):
            with pytest.raises(exc.PermissionDeniedError):
                credentials.drop(Credentials(1000, 100))

        assert calls == [("setgid", 100), ("setuid", 1000), ("setgid", 50)]

    @pytest.mark.skipif(os.geteuid() == 0, reason="root can assume any id")
    def test_unprivileged_drop_to_root_fails_unchanged(self):
        before = (os.getuid(), os.geteuid(), os.getgid(), os.getegid())

        with pytest.raises(exc.PermissionDeniedError):
            credentials.drop(Credentials(0, 0))

        assert (os.getuid(), os.geteuid(), os.getgid(), os.getegid()) == before

    def test_effective_drop_to_own_identity(self):
        before = (os.getuid(), os.geteuid(), os.getgid(), os.getegid())

        credentials.drop(Credentials(os.geteuid(), os.getegid(),
                                     effective_only=True))

        assert (os.getuid(), os.geteuid(), os.getgid(), os.getegid()) == before


DROP_SCRIPT = """
import json
import os

from procdetach import credentials
from procdetach.credentials import Credentials

os.setgroups([0, 4, 27])
target = Credentials(65534, 65534)
expected = credentials.get_target_groups(target)
credentials.drop(target)
print(json.dumps({"uid": os.getuid(), "gid": os.getgid(),
                  "groups": os.getgroups(), "expected": expected}))
"""


@pytest.mark.skipif(os.geteuid() != 0, reason="needs root")
def test_drop_from_root_replaces_groups():
    proc = subprocess.run([sys.executable, "-c", DROP_SCRIPT],
                          env=child_env(), stdout=subprocess.PIPE,
                          check=True, timeout=30)
    result = json.loads(proc.stdout.decode("utf-8"))

    assert (result["uid"], result["gid"]) == (65534, 65534)
    assert 0 not in result["groups"]
    assert sorted(set(result["groups"])) == sorted(set(result["expected"]))


class TestResolve:

    def test_nothing_given(self):
        assert credentials.resolve() is None
        assert credentials.resolve("", "") is None

    def test_numeric_ids(self):
        assert credentials.resolve("1000", "100") == Credentials(1000, 100)

    def test_user_name_with_primary_group(self):
        entry = SimpleNamespace(pw_uid=1000, pw_gid=1001)
        with patch("pwd.getpwnam", return_value=entry), \
                patch("pwd.getpwuid", return_value=entry):
            target = credentials.resolve("daemon-user", effective_only=True)

        assert target == Credentials(1000, 1001, True)

    def test_group_name(self):
        with patch("grp.getgrnam", return_value=SimpleNamespace(gr_gid=33)):
            target = credentials.resolve("1000", "www-data")
        assert target.gid == 33

    def test_group_only_keeps_user(self):
        target = credentials.resolve(group="100")
        assert target == Credentials(os.getuid(), 100)

    def test_unknown_user(self):
        with patch("pwd.getpwnam", side_effect=KeyError("nobody-here")):
            with pytest.raises(ValueError):
                credentials.resolve("nobody-here")

    def test_unknown_group(self):
        with patch("grp.getgrnam", side_effect=KeyError("nogroup-here")):
            with pytest.raises(ValueError):
                credentials.resolve("1000", "nogroup-here")

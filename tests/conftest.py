"""Shared pytest configuration and fixtures for all tests."""

import json
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import pytest

from procdetach import pidfile

SRC_DIR = str(Path(__file__).resolve().parent.parent / "src")


@pytest.fixture(autouse=True)
def restore_environment():
    saved = dict(os.environ)
    yield
    os.environ.clear()
    os.environ.update(saved)


@pytest.fixture(autouse=True)
def release_pidfiles():
    """Close the pidfiles locked by a test."""
    yield
    for handle in pidfile.held_handles():
        try:
            os.close(handle.fd)
        except OSError:
            pass
    del pidfile._held[:]


def child_env():
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        [SRC_DIR] + [p for p in env.get("PYTHONPATH", "").split(os.pathsep) if p])
    for name in (pidfile.INHERITED_FD_ENV, "PROCDETACH_RESTARTED"):
        env.pop(name, None)
    return env


def wait_for(predicate, timeout=10.0, interval=0.05):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(interval)
    raise AssertionError("Timed out waiting for %r" % predicate)


def read_json(path):
    """Return the JSON document at path, or None while it is incomplete."""
    try:
        return json.loads(Path(path).read_text())
    except (OSError, ValueError):
        return None


@pytest.fixture
def daemon_runner(tmp_path):
    """Run a Python script that daemonizes itself.

    Returns a function taking the script source and its arguments. The
    function returns once the original process has exited. The
    descriptors in ``closed_fds`` are closed before the script starts.
    Daemons registered with ``run.track(pid)`` are killed after the test.
    """
    pids = []
    scripts = []

    def run(source, *args, closed_fds=()):
        script = tmp_path / ("daemon_%d.py" % len(scripts))
        script.write_text(source)
        scripts.append(script)
        command = [sys.executable, str(script)] + [str(arg) for arg in args]

        def close_fds():
            for fd in closed_fds:
                os.close(fd)

        return subprocess.run(command, env=child_env(),
                              stdin=subprocess.DEVNULL, timeout=30,
                              preexec_fn=close_fds if closed_fds else None)

    def track(pid):
        pids.append(pid)

    run.track = track
    yield run

    for pid in pids:
        if pid:
            try:
                os.kill(pid, signal.SIGKILL)
            except OSError:
                pass

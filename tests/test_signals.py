"""Tests for the signal mask handling."""

import signal
import subprocess
import sys
from unittest.mock import MagicMock

from procdetach import signals

from conftest import child_env


class TestSignalMaskManager:

    def test_unmask_unblocks_and_remembers(self):
        sigmask = MagicMock(return_value=set())
        manager = signals.SignalMaskManager(sigmask)

        manager.unmask([signal.SIGUSR1])

        sigmask.assert_called_once_with(signal.SIG_UNBLOCK, {signal.SIGUSR1})
        assert manager.signals == {signal.SIGUSR1}

    def test_unmask_all_repeats_every_signal(self):
        sigmask = MagicMock(return_value=set())
        manager = signals.SignalMaskManager(sigmask)
        manager.unmask([signal.SIGHUP])
        manager.unmask([signal.SIGUSR2])
        sigmask.reset_mock()

        manager.unmask_all()
        manager.unmask_all()

        assert sigmask.call_count == 2
        sigmask.assert_called_with(signal.SIG_UNBLOCK,
                                   {signal.SIGHUP, signal.SIGUSR2})

    def test_blocked_queries_without_change(self):
        sigmask = MagicMock(return_value={signal.SIGUSR1})
        manager = signals.SignalMaskManager(sigmask)

        assert manager.blocked() == {signal.SIGUSR1}
        sigmask.assert_called_once_with(signal.SIG_BLOCK, [])

    def test_module_manager_knows_restart_signal(self):
        assert signals.RESTART_SIGNAL == signal.SIGHUP
        assert signals.RESTART_SIGNAL in signals.MASK_MANAGER.signals

    def test_restart_signal_not_blocked_here(self):
        assert signals.RESTART_SIGNAL not in signals.blocked()


CHECK_MASK = """
import signal
print(int(signal.SIGHUP in signal.pthread_sigmask(signal.SIG_BLOCK, [])))
from procdetach import signals
blocked = signals.blocked()
print(int(signal.SIGHUP in blocked), int(signal.SIGUSR1 in blocked))
signals.unmask([signal.SIGUSR1])
print(int(signal.SIGUSR1 in signals.blocked()))
"""


def _block_hup_and_usr1():
    signal.pthread_sigmask(signal.SIG_BLOCK, [signal.SIGHUP, signal.SIGUSR1])


def test_fresh_process_unblocks_only_restart_signal():
    proc = subprocess.run([sys.executable, "-c", CHECK_MASK],
                          preexec_fn=_block_hup_and_usr1, env=child_env(),
                          stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                          universal_newlines=True, timeout=30)
    assert proc.returncode == 0, proc.stderr

    lines = proc.stdout.split("\n")
    # Blocked when the interpreter started.
    assert lines[0] == "1"
    # Restart signal unblocked by the import, SIGUSR1 still blocked.
    assert lines[1] == "0 1"
    # SIGUSR1 only after the explicit call.
    assert lines[2] == "0"

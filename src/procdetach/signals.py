# coding=utf-8
"""This module keeps the restart signals out of the blocked signal set.

A signal handler that replaces the process image inherits its blocked
signals into the new image. Signals used to trigger a restart therefore
have to be unblocked explicitly, otherwise the new image would never see
them again.

On import the restart signal is unblocked for the whole process.

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

import signal

from procdetach import log

LOG = log.get_logger("signals")

RESTART_SIGNAL = signal.SIGHUP


class SignalMaskManager(object):
    """Unblocks a set of signals through the given mask function.

    `sigmask` has the signature of :func:`signal.pthread_sigmask`.
    """
    def __init__(self, sigmask=signal.pthread_sigmask):
        super(SignalMaskManager, self).__init__()
        self._sigmask = sigmask
        self.signals = set()

    def blocked(self):
        # Blocking nothing returns the current mask unchanged.
        return set(self._sigmask(signal.SIG_BLOCK, []))

    def unmask(self, signals):
        signals = set(signals)
        self.signals.update(signals)
        LOG.debug("Unblocking signals: %s", sorted(signals))
        self._sigmask(signal.SIG_UNBLOCK, signals)

    def unmask_all(self):
        self._sigmask(signal.SIG_UNBLOCK, self.signals)


MASK_MANAGER = SignalMaskManager()
MASK_MANAGER.unmask([RESTART_SIGNAL])


def unmask(signals):
    MASK_MANAGER.unmask(signals)


def blocked():
    return MASK_MANAGER.blocked()

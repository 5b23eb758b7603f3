# Copyright (C) 2024  The qemupull developers

# This library is free software; you can redistribute it and/or
# modify it under the terms of the GNU Lesser General Public
# License as published by the Free Software Foundation;
# version 2.1 of the License.

# This library is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.

# You should have received a copy of the GNU Lesser General Public
# License along with this library; if not, write to the Free Software
# Foundation, Inc., 51 Franklin Street, Fifth Floor, Boston, MA  02110-1301  USA

"""
Load-gated, retrying installation of a single image.
"""

import logging
import time

import monotonic

import qemupull.QPException

SUCCESS = 'success'
EXHAUSTED = 'exhausted'
GATE_TIMEOUT = 'gate-timeout'
ERROR = 'error'


class AttemptResult(object):
    """
    The outcome of installing one image.  The members are:

    image_id - The image that was installed (or not).
    success  - True if one of the attempts succeeded.
    attempts - The number of the last attempt made.
    outcome  - One of SUCCESS, EXHAUSTED, GATE_TIMEOUT or ERROR.
    """
    def __init__(self, image_id, outcome, attempts):
        self.image_id = image_id
        self.outcome = outcome
        self.attempts = attempts

    @property
    def success(self):
        return self.outcome == SUCCESS

    def __repr__(self):
        return "AttemptResult(%r, %r, %d)" % (self.image_id, self.outcome,
                                              self.attempts)


class RetryGatedInstaller(object):
    """
    Class that installs images one at a time, never starting a pull while
    the host is busy.  The arguments are:

    policy       - The InstallPolicy for the run.
    monitor      - An object with a sample() method returning the current
                   CPU load as an integer percentage.
    catalog      - An object with a fetch(image_id) method returning True on
                   success.
    sleep        - Callable used for every wait (default time.sleep).
    clock        - Callable returning monotonic seconds, used to enforce the
                   gate timeout (default monotonic.monotonic).
    cancel_event - Optional threading.Event; once set, InstallCancelled is
                   raised at the next check between units of work.
    """
    def __init__(self, policy, monitor, catalog, sleep=None, clock=None,
                 cancel_event=None):
        self.policy = policy
        self.monitor = monitor
        self.catalog = catalog
        self.sleep = sleep
        if self.sleep is None:
            self.sleep = time.sleep
        self.clock = clock
        if self.clock is None:
            self.clock = monotonic.monotonic
        self.cancel_event = cancel_event
        self.log = logging.getLogger('%s.%s' % (__name__,
                                                self.__class__.__name__))

    def check_cancelled(self):
        """
        Method to raise InstallCancelled if cancellation was requested.
        """
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise qemupull.QPException.InstallCancelled("Installation cancelled")

    def _wait(self, seconds):
        """
        Internal method to sleep, then check for cancellation.
        """
        self.sleep(seconds)
        self.check_cancelled()

    def _wait_for_load(self):
        """
        Internal method implementing the gate loop.  It returns as soon as a
        sample is below the CPU threshold, and otherwise keeps sleeping for
        the cooldown interval.  With a gate timeout of 0 it waits forever.
        """
        self.check_cancelled()
        start = self.clock()
        load = self.monitor.sample()
        self.log.info("Current CPU usage: %d%%", load)
        while load >= self.policy.cpu_threshold:
            if self.policy.gate_timeout and self.clock() - start >= self.policy.gate_timeout:
                raise qemupull.QPException.GateTimeoutException("CPU usage stayed at or above %d%% for %d seconds" % (self.policy.cpu_threshold, self.policy.gate_timeout),
                                                                load)
            self.log.info("High CPU usage detected (%d%%). Waiting for CPU usage to decrease...", load)
            self._wait(self.policy.cooldown_interval)
            load = self.monitor.sample()
            self.log.info("Rechecking CPU usage: %d%%", load)

        return load

    def _attempt_all(self, image_id):
        """
        Internal method that runs the gated attempts for one image and
        returns the AttemptResult, without the trailing pause.
        """
        attempt = 1
        while True:
            try:
                self._wait_for_load()
            except qemupull.QPException.GateTimeoutException as err:
                self.log.error("Gave up waiting to install QEMU image with ID %s: %s", image_id, err)
                return AttemptResult(image_id, GATE_TIMEOUT, attempt - 1)

            self.check_cancelled()
            self.log.info("Installing QEMU image with ID: %s (Attempt %d)", image_id, attempt)
            if self.catalog.fetch(image_id):
                self.log.info("Successfully installed QEMU image with ID %s.", image_id)
                return AttemptResult(image_id, SUCCESS, attempt)

            self.log.error("Failed to install QEMU image with ID %s. Attempt %d of %d.",
                           image_id, attempt, self.policy.max_attempts)
            if attempt >= self.policy.max_attempts:
                self.log.error("Max retries reached. Skipping QEMU image with ID %s.", image_id)
                return AttemptResult(image_id, EXHAUSTED, attempt)

            attempt += 1
            self._wait(self.policy.cooldown_interval)
            self.log.info("Retrying QEMU image with ID %s", image_id)

    def install(self, image_id):
        """
        Method to install one image.  Before every attempt the host load is
        checked, and nothing is pulled until it drops below the threshold.
        A failed pull is retried after the cooldown interval, up to
        max_retries more times.  Whatever the outcome, the installer then
        pauses for pause_between_installs seconds so that consecutive
        installs cannot saturate the host.  Returns an AttemptResult; the
        only exception raised is InstallCancelled, which can only happen
        before the image finishes.
        """
        result = self._attempt_all(image_id)

        self.log.info("Pausing for %d seconds before the next installation...",
                      self.policy.pause_between_installs)
        self.sleep(self.policy.pause_between_installs)

        return result

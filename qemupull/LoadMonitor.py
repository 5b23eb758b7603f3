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
Host CPU load sampling.
"""

import logging
import re

import qemupull.QPException
import qemupull.qputil

# matches the idle figure of the top summary line, for instance
# "%Cpu(s):  1.6 us,  0.3 sy,  0.0 ni, 97.9 id,  0.1 wa, ..."
_idle_re = re.compile(r'([0-9]+(?:[.,][0-9]+)?)\s*%?\s*id\b')


def parse_top_output(output):
    """
    Function to get the CPU utilization out of the output of 'top -bn1'.
    The utilization is 100 minus the idle percentage, truncated to an
    integer and clamped to 0-100.  Raises QPException if the output has no
    parseable Cpu(s) line.
    """
    for line in output.splitlines():
        if 'Cpu(s)' not in line:
            continue
        match = _idle_re.search(line)
        if match is None:
            break
        idle = float(match.group(1).replace(',', '.'))
        return max(0, min(100, int(100 - idle)))

    raise qemupull.QPException.QPException("Could not find the CPU usage in the output of top")


class LoadMonitor(object):
    """
    Class to sample the current CPU utilization of the host.  Every call to
    sample() runs top afresh; nothing is cached or averaged.
    """
    def __init__(self, top='top'):
        self.top = top
        self.log = logging.getLogger('%s.%s' % (__name__,
                                                self.__class__.__name__))

    def check(self):
        """
        Method to make sure that sampling will work.  This is meant to be
        called once at startup; a PreconditionException is raised if top is
        missing or its output cannot be understood.
        """
        try:
            qemupull.qputil.executable_exists(self.top)
            load = self.sample()
        except (qemupull.qputil.SubprocessException,
                qemupull.QPException.QPException) as err:
            raise qemupull.QPException.PreconditionException("%s command is required but it is not usable: %s" % (self.top, err))

        self.log.debug("Initial CPU usage: %d%%", load)

    def sample(self):
        """
        Method to return the current CPU utilization as an integer percentage.
        """
        stdout, stderr_unused, retcode_unused = qemupull.qputil.subprocess_check_output([self.top, '-bn1'])
        return parse_top_output(stdout)

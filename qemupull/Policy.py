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
The install policy: load threshold, retry bound and pacing.
"""

import collections

import qemupull.QPException
import qemupull.qputil

_PolicyBase = collections.namedtuple('_PolicyBase',
                                     ['cpu_threshold', 'cooldown_interval',
                                      'pause_between_installs', 'max_retries',
                                      'gate_timeout'])


class InstallPolicy(_PolicyBase):
    """
    Immutable set of parameters that govern a whole installation run.  The
    members are:

    cpu_threshold          - The gate waits while the sampled CPU load is at
                             or above this percentage (0-100).
    cooldown_interval      - Seconds to sleep inside the gate loop and
                             between retries.
    pause_between_installs - Seconds to sleep after every image, whether it
                             was installed or not.
    max_retries            - Extra attempts after the first before an image
                             is given up on.
    gate_timeout           - Maximum seconds a single gate wait may last;
                             0 means wait forever.
    """
    __slots__ = ()

    def __new__(cls, cpu_threshold=70, cooldown_interval=5,
                pause_between_installs=10, max_retries=3, gate_timeout=0):
        if not 0 <= cpu_threshold <= 100:
            raise qemupull.QPException.QPException("cpu_threshold must be between 0 and 100, not %d" % (cpu_threshold))
        for name, value in (('cooldown_interval', cooldown_interval),
                            ('pause_between_installs', pause_between_installs),
                            ('gate_timeout', gate_timeout)):
            if value < 0:
                raise qemupull.QPException.QPException("%s cannot be negative" % (name))
        if max_retries < 0:
            raise qemupull.QPException.QPException("max_retries cannot be negative")

        return _PolicyBase.__new__(cls, cpu_threshold, cooldown_interval,
                                   pause_between_installs, max_retries,
                                   gate_timeout)

    @property
    def max_attempts(self):
        """
        Total number of fetch attempts allowed for a single image.
        """
        return self.max_retries + 1


def policy_from_config(config, **overrides):
    """
    Function to build an InstallPolicy from the [install] section of a
    ConfigParser object.  Any keyword argument that is not None takes
    precedence over the config file; this is how command-line options are
    applied.
    """
    values = {
        'cpu_threshold': qemupull.qputil.config_get_int_key(config, 'install',
                                                            'cpu_threshold', 70),
        'cooldown_interval': qemupull.qputil.config_get_int_key(config, 'install',
                                                                'cooldown_interval', 5),
        'pause_between_installs': qemupull.qputil.config_get_int_key(config, 'install',
                                                                     'pause_between_installs', 10),
        'max_retries': qemupull.qputil.config_get_int_key(config, 'install',
                                                          'max_retries', 3),
        'gate_timeout': qemupull.qputil.config_get_int_key(config, 'install',
                                                           'gate_timeout', 0),
    }
    for key, value in overrides.items():
        if key not in values:
            raise qemupull.QPException.QPException("Unknown install policy option '%s'" % (key))
        if value is not None:
            values[key] = value

    return InstallPolicy(**values)

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
Exception classes for qemupull.
"""


class QPException(Exception):
    """
    Base class for all qemupull errors.
    """
    pass


class PreconditionException(QPException):
    """
    Raised when a tool the installer depends on (top, ishare2) is not
    available.  These are checked once, before any menu is shown.
    """
    pass


class GateTimeoutException(QPException):
    """
    Raised when the host load stays above the threshold for longer than the
    configured gate timeout.  It carries the last load sample seen.
    """
    def __init__(self, msg, last_sample):
        QPException.__init__(self, msg)
        self.last_sample = last_sample


class InstallCancelled(QPException):
    """
    Raised when a cancellation request is noticed between units of work.
    """
    pass

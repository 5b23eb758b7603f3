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
Image catalog backed by the ishare2 command-line tool.
"""

import logging
import os
import re
import subprocess
import sys

import requests

import qemupull.QPException
import qemupull.qputil

DEFAULT_URL = "https://raw.githubusercontent.com/ishare2-org/ishare2-cli/main/ishare2"
DEFAULT_INSTALL_PATH = "/usr/sbin/ishare2"

_image_line_re = re.compile(r'^([0-9]+)')


def parse_search_output(output):
    """
    Function to extract the image IDs from the output of 'ishare2 search'.
    Every line that starts with a number describes one image, and the
    number is its ID.  The IDs are returned in the order they were listed.
    """
    ids = []
    for line in output.splitlines():
        match = _image_line_re.match(line)
        if match is not None:
            ids.append(match.group(1))
    return ids


class Ishare2Catalog(object):
    """
    Class that searches for and pulls QEMU images with ishare2.  This is the
    production binding of the search/fetch interface the orchestrator and
    installer use; anything with the same two methods can stand in for it.
    """
    def __init__(self, binary='ishare2', printfn=None):
        self.binary = binary
        self.printfn = printfn
        if self.printfn is None:
            self.printfn = sys.stdout.write
        self.log = logging.getLogger('%s.%s' % (__name__,
                                                self.__class__.__name__))

    def search(self, prefix):
        """
        Method to search the catalog for QEMU images whose names start with
        prefix.  Returns the list of matching image IDs, which is empty when
        nothing matched or the search itself failed.
        """
        try:
            stdout, stderr_unused, retcode_unused = qemupull.qputil.subprocess_check_output([self.binary, 'search', 'qemu', prefix + '-'])
        except (qemupull.qputil.SubprocessException,
                qemupull.QPException.QPException, OSError) as err:
            self.log.warning("Search for %s- failed: %s", prefix, err)
            return []

        for line in stdout.splitlines():
            self.log.info(line)

        return parse_search_output(stdout)

    def fetch(self, image_id):
        """
        Method to pull a single QEMU image.  Returns True if ishare2 reported
        success, False otherwise.
        """
        try:
            qemupull.qputil.subprocess_check_output([self.binary, 'pull', 'qemu', str(image_id)],
                                                    printfn=self.printfn)
        except (qemupull.qputil.SubprocessException,
                qemupull.QPException.QPException, OSError) as err:
            self.log.debug("Pull of %s failed: %s", image_id, err)
            return False

        return True


def bootstrap(binary, url=DEFAULT_URL, install_path=DEFAULT_INSTALL_PATH):
    """
    Function to make sure ishare2 is available.  If binary can already be
    found it is returned unchanged.  Otherwise the script is downloaded from
    url to install_path, made executable and run once with empty answers so
    it can finish its own setup.  Returns the path to use for the binary;
    raises PreconditionException if it still cannot be found.
    """
    log = logging.getLogger(__name__)

    try:
        return qemupull.qputil.executable_exists(binary)
    except qemupull.QPException.PreconditionException:
        pass

    log.warning("%s is not installed. Installing now...", binary)

    qemupull.qputil.mkdir_p(os.path.dirname(install_path))
    try:
        fd = os.open(install_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o755)
        try:
            qemupull.qputil.http_download_file(url, fd, False, log)
        finally:
            os.close(fd)
        os.chmod(install_path, 0o755)
    except (OSError, requests.RequestException) as err:
        raise qemupull.QPException.PreconditionException("Failed to download %s from %s: %s" % (binary, url, err))

    # the first run asks a handful of setup questions; accept every default
    try:
        process = subprocess.Popen([install_path], stdin=subprocess.PIPE,
                                   stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
        output, unused = process.communicate(input=b'\n' * 64)
    except OSError as err:
        raise qemupull.QPException.PreconditionException("Failed to run %s: %s" % (install_path, err))
    log.debug(output.decode('utf-8', 'replace'))

    try:
        path = qemupull.qputil.executable_exists(install_path)
    except qemupull.QPException.PreconditionException:
        raise qemupull.QPException.PreconditionException("Failed to install %s." % (binary))

    log.info("%s installed successfully.", binary)
    return path

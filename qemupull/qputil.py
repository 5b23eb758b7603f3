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
Miscellaneous utility functions.
"""

import configparser
import errno
import logging
import os
import select
import subprocess
import time
import urllib.request

import requests

import rich.logging

import qemupull.QPException


def executable_exists(program):
    """
    Function to find out whether an executable exists in the PATH
    of the user.  If so, the absolute path to the executable is returned.
    If not, a PreconditionException is raised.
    """
    def is_exe(fpath):
        """
        Helper method to check if a file exists and is executable
        """
        return os.path.isfile(fpath) and os.access(fpath, os.X_OK)

    if not program:
        raise qemupull.QPException.QPException("Invalid program name passed")

    if os.path.dirname(program):
        if is_exe(program):
            return program
    else:
        for path in os.environ.get("PATH", os.defpath).split(os.pathsep):
            exe_file = os.path.join(path, program)
            if is_exe(exe_file):
                return exe_file

    raise qemupull.QPException.PreconditionException("Could not find %s" % (program))


def write_bytes_to_fd(fd, buf):
    """
    Function to write all bytes in "buf" to "fd", handling short writes.
    """
    offset = 0
    while offset < len(buf):
        offset += os.write(fd, buf[offset:])

    return offset


def string_to_bool(instr):
    """
    Function to take a string and determine whether it is True, Yes, False,
    or No.  It takes a single argument, which is the string to examine.

    Returns True if instr is "Yes" or "True", False if instr is "No"
    or "False", and None otherwise.
    """
    if instr is None:
        raise qemupull.QPException.QPException("Input string was None!")
    lower = instr.strip().lower()
    if lower in ('no', 'false'):
        return False
    if lower in ('yes', 'true'):
        return True
    return None


class SubprocessException(Exception):
    """
    Class for subprocess exceptions.  In addition to a error message, it
    also has a retcode member that has the returncode from the command.
    """
    def __init__(self, msg, retcode):
        Exception.__init__(self, msg)
        self.retcode = retcode


def subprocess_check_output(*popenargs, **kwargs):
    """
    Function to call a subprocess and gather the output.  If the keyword
    argument printfn is given, every chunk of output is passed to it as it
    arrives, which is how long running pulls show their progress.  A
    non-zero exit status raises SubprocessException.
    """
    if 'stdout' in kwargs:
        raise ValueError('stdout argument not allowed, it will be overridden.')
    if 'stderr' in kwargs:
        raise ValueError('stderr argument not allowed, it will be overridden.')

    printfn = kwargs.pop('printfn', None)

    executable_exists(popenargs[0][0])

    process = subprocess.Popen(stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                               *popenargs, **kwargs)

    poller = select.poll()
    readable = select.POLLIN | select.POLLPRI
    poller.register(process.stdout.fileno(), readable)
    poller.register(process.stderr.fileno(), readable)

    output = {process.stdout.fileno(): [], process.stderr.fileno(): []}
    open_fds = 2
    while open_fds > 0:
        for fd, mode in poller.poll(1000):
            data = b''
            if mode & readable:
                data = os.read(fd, 4096)
            if not data:
                # EOF, hang up or error; stop watching this pipe
                poller.unregister(fd)
                open_fds -= 1
                continue
            data = data.decode('utf-8', 'replace')
            if printfn is not None:
                printfn(data)
            output[fd].append(data)

    retcode = process.wait()
    process.stdout.close()
    process.stderr.close()

    stdout = ''.join(output[process.stdout.fileno()])
    stderr = ''.join(output[process.stderr.fileno()])

    if retcode:
        raise SubprocessException("'%s' failed(%d): %s" % (' '.join(popenargs[0]), retcode,
                                                           stderr + stdout), retcode)

    return (stdout, stderr, retcode)


def mkdir_p(path):
    """
    Function to make a directory and all intermediate directories as
    necessary.  The functionality differs from os.makedirs slightly, in
    that this function does *not* raise an error if the directory already
    exists.
    """
    if path is None:
        raise qemupull.QPException.QPException("Path cannot be None")

    if path == '':
        return

    try:
        os.makedirs(path)
    except OSError as err:
        if err.errno != errno.EEXIST or not os.path.isdir(path):
            raise


def config_get_key(config, section, key, default):
    """
    Function to retrieve config parameters out of the config file.
    """
    if config is not None and config.has_section(section) and config.has_option(section, key):
        return config.get(section, key)
    return default


def config_get_boolean_key(config, section, key, default):
    """
    Function to retrieve boolean config parameters out of the config file.
    """
    value = config_get_key(config, section, key, None)
    if value is None:
        return default

    retval = string_to_bool(value)
    if retval is None:
        raise qemupull.QPException.QPException("Configuration parameter '%s' must be True, Yes, False, or No" % (key))

    return retval


def config_get_int_key(config, section, key, default):
    """
    Function to retrieve integer config parameters out of the config file.
    """
    value = config_get_key(config, section, key, None)
    if value is None:
        return default

    try:
        return int(value)
    except ValueError:
        raise qemupull.QPException.QPException("Configuration parameter '%s' must be an integer, not '%s'" % (key, value))


def config_get_path(config, section, key, default):
    """
    Function to get an user-expanded path out of the config file at
    the passed in section and key.  If the value is not in the config
    file, then the default value is returned.
    """
    return os.path.expanduser(config_get_key(config, section, key, default))


def parse_config(config_file):
    """
    Function to parse the configuration file.  If the passed in config_file is
    None, then the default configuration file is used.
    """
    config = configparser.ConfigParser()
    if config_file is not None:
        # An explicitly named file has to exist, so open it ourselves and
        # let the error propagate
        with open(os.path.expanduser(config_file)) as f:
            config.read_file(f)
    else:
        # Otherwise ~/.qemupull/qemupull.cfg, then the system-wide file for
        # root.  If neither exists the built-in defaults are used.
        parsed = config.read(os.path.expanduser("~/.qemupull/qemupull.cfg"))
        if not parsed and os.geteuid() == 0:
            config.read("/etc/qemupull/qemupull.cfg")

    return config


def default_log_filename():
    """
    Function to generate the name of the per-run log file.
    """
    return time.strftime("qemu_installation_log_%Y%m%d_%H%M%S.log")


def setup_logging(log_dir, console=None, debug=False):
    """
    Function to attach the per-run log file and the console handler to the
    qemupull logger.  The log file is only ever appended to.  Returns the
    full path to the log file.
    """
    mkdir_p(log_dir)
    logfile = os.path.join(log_dir, default_log_filename())

    log = logging.getLogger('qemupull')
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()
    log.setLevel(logging.DEBUG if debug else logging.INFO)

    filehandler = logging.FileHandler(logfile, mode='a')
    filehandler.setFormatter(logging.Formatter('%(asctime)s: %(message)s'))
    log.addHandler(filehandler)

    consolehandler = rich.logging.RichHandler(console=console, show_path=False)
    log.addHandler(consolehandler)

    return logfile


class LocalFileAdapter(requests.adapters.BaseAdapter):
    '''
    This class implements an adapter for requests so we can properly deal with file://
    local files.
    '''
    @staticmethod
    def _chkpath(method, path):
        """Return an HTTP status for the given filesystem path."""
        if method.lower() not in ('get', 'head'):
            return 405, "Method Not Allowed"
        elif os.path.isdir(path):
            return 400, "Path Not A File"
        elif not os.path.isfile(path):
            return 404, "File Not Found"
        elif not os.access(path, os.R_OK):
            return 403, "Access Denied"
        return 200, "OK"

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        """
        Return the file specified by the given request.
        """
        path = os.path.normcase(os.path.normpath(urllib.request.url2pathname(request.path_url)))
        response = requests.Response()

        response.status_code, response.reason = self._chkpath(request.method, path)
        if response.status_code == 200:
            response.headers['Content-Length'] = str(os.path.getsize(path))
            if request.method.lower() != 'head':
                response.raw = open(path, 'rb')

        response.url = request.url
        response.request = request
        response.connection = self

        return response

    def close(self):
        pass


def http_download_file(url, fd, show_progress, logger):
    """
    Function to download a file from url to file descriptor fd.  A non-200
    response raises requests.HTTPError.
    """
    with requests.Session() as requests_session:
        requests_session.mount('file://', LocalFileAdapter())
        response = requests_session.get(url, stream=True, allow_redirects=True,
                                        headers={'Accept-Encoding': ''}, timeout=60)
        response.raise_for_status()
        file_size = int(response.headers.get('Content-Length', 0))
        done = 0
        for chunk in response.iter_content(1024 * 1024):
            write_bytes_to_fd(fd, chunk)
            done += len(chunk)
            if show_progress:
                logger.debug("%dkB of %dkB", done // 1024, file_size // 1024)

    return done

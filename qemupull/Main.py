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
Entry point for qemupull-install.
"""

import argparse
import logging
import signal
import sys
import threading

import rich.console
import rich.markup

import qemupull
import qemupull.Installer
import qemupull.Ishare2
import qemupull.LoadMonitor
import qemupull.Menu
import qemupull.Orchestrator
import qemupull.Policy
import qemupull.QPException
import qemupull.Template
import qemupull.qputil

DEFAULT_TEMPLATE_DIR = "/opt/unetlab/html/templates/intel/"


def get_parser():
    """
    Function to build the command-line parser.
    """
    parser = argparse.ArgumentParser(prog='qemupull-install',
                                     description='Select and install QEMU images for .yml templates, pacing the installs by host CPU load.')
    parser.add_argument('-c', '--config', default=None,
                        help='configuration file to use')
    parser.add_argument('-d', '--template-dir', default=None,
                        help='directory holding the .yml templates')
    parser.add_argument('-k', '--keyword', default=None,
                        help='filter descriptions by keyword instead of asking')
    parser.add_argument('-t', '--cpu-threshold', type=int, default=None,
                        help='do not start an install while CPU usage is at or above this percentage')
    parser.add_argument('-r', '--max-retries', type=int, default=None,
                        help='retries after a failed install before the image is skipped')
    parser.add_argument('--cooldown', type=int, default=None,
                        help='seconds to wait between load checks and between retries')
    parser.add_argument('--pause', type=int, default=None,
                        help='seconds to pause after every image')
    parser.add_argument('--gate-timeout', type=int, default=None,
                        help='give up on an image if the CPU stays busy this many seconds (0 waits forever)')
    parser.add_argument('-l', '--log-dir', default=None,
                        help='directory to write the installation log to')
    parser.add_argument('--no-bootstrap', action='store_true',
                        help='do not download ishare2 if it is missing')
    parser.add_argument('--debug', action='store_true',
                        help='log debugging output')
    parser.add_argument('-V', '--version', action='version',
                        version='%(prog)s ' + qemupull.__version__)
    return parser


def check_preconditions(config, bootstrap):
    """
    Function to make sure the ishare2 and top tools are usable.  Returns
    the ishare2 binary to use; raises PreconditionException otherwise.
    """
    binary = qemupull.qputil.config_get_key(config, 'ishare2', 'binary', 'ishare2')
    if bootstrap and qemupull.qputil.config_get_boolean_key(config, 'ishare2', 'bootstrap', True):
        binary = qemupull.Ishare2.bootstrap(binary,
                                            qemupull.qputil.config_get_key(config, 'ishare2', 'url',
                                                                           qemupull.Ishare2.DEFAULT_URL),
                                            qemupull.qputil.config_get_path(config, 'ishare2', 'install_path',
                                                                            qemupull.Ishare2.DEFAULT_INSTALL_PATH))
    else:
        binary = qemupull.qputil.executable_exists(binary)

    monitor = qemupull.LoadMonitor.LoadMonitor()
    monitor.check()

    return binary, monitor


def main(argv=None, console=None, input_func=None):
    """
    Function to run qemupull-install.  Returns the exit status.
    """
    args = get_parser().parse_args(argv)

    if console is None:
        console = rich.console.Console()

    try:
        config = qemupull.qputil.parse_config(args.config)
        policy = qemupull.Policy.policy_from_config(config,
                                                    cpu_threshold=args.cpu_threshold,
                                                    cooldown_interval=args.cooldown,
                                                    pause_between_installs=args.pause,
                                                    max_retries=args.max_retries,
                                                    gate_timeout=args.gate_timeout)
        log_dir = args.log_dir
        if log_dir is None:
            log_dir = qemupull.qputil.config_get_path(config, 'paths', 'log_dir', '.')
        template_dir = args.template_dir
        if template_dir is None:
            template_dir = qemupull.qputil.config_get_path(config, 'paths', 'template_dir',
                                                           DEFAULT_TEMPLATE_DIR)
        page_size = qemupull.qputil.config_get_int_key(config, 'menu', 'page_size', 20)
    except (IOError, qemupull.QPException.QPException) as err:
        console.print("[bold red]%s[/bold red]" % (rich.markup.escape(str(err))))
        return 1

    logfile = qemupull.qputil.setup_logging(log_dir, console, args.debug)
    log = logging.getLogger('qemupull')
    log.debug("Logging to %s", logfile)

    console.rule("[bold white]QEMUPULL[/bold white]")

    try:
        binary, monitor = check_preconditions(config, not args.no_bootstrap)
        templates = qemupull.Template.scan_templates(template_dir)
    except qemupull.QPException.QPException as err:
        log.error("%s Aborting.", err)
        return 1

    cancel = threading.Event()

    def _cancel_handler(signum, frame_unused):
        """
        Signal handler asking the run to stop after the current unit of work.
        """
        log.warning("Received signal %d, stopping after the current installation.", signum)
        cancel.set()

    previous = signal.signal(signal.SIGTERM, _cancel_handler)

    catalog = qemupull.Ishare2.Ishare2Catalog(binary)
    installer = qemupull.Installer.RetryGatedInstaller(policy, monitor, catalog,
                                                       sleep=cancel.wait,
                                                       cancel_event=cancel)
    orchestrator = qemupull.Orchestrator.BatchOrchestrator(installer, catalog)
    menu = qemupull.Menu.Menu(templates, orchestrator, console=console,
                              input_func=input_func, page_size=page_size)

    try:
        return menu.run(args.keyword)
    except (KeyboardInterrupt, EOFError):
        log.info("Installation interrupted by user.")
        return 0
    finally:
        signal.signal(signal.SIGTERM, previous)


if __name__ == '__main__':
    sys.exit(main())

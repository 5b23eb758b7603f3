"""
Load-aware installation of QEMU images for network lab templates.

qemupull scans a directory of .yml template descriptors, lets the user pick
one or all of them by description, and installs every QEMU image that the
ishare2 catalog lists for the chosen templates.  Installs run strictly one
at a time; before each attempt the host CPU load is checked and nothing is
pulled until it drops below a threshold, failed pulls are retried a bounded
number of times, and every image is followed by a pause so that a long
batch cannot saturate the host.

The simplest qemupull program (without error handling or any advanced
features) would look something like:

import qemupull.Installer
import qemupull.Ishare2
import qemupull.LoadMonitor
import qemupull.Orchestrator
import qemupull.Policy
import qemupull.Template

policy = qemupull.Policy.InstallPolicy(cpu_threshold=70, max_retries=3)
catalog = qemupull.Ishare2.Ishare2Catalog()
installer = qemupull.Installer.RetryGatedInstaller(policy,
                                                   qemupull.LoadMonitor.LoadMonitor(),
                                                   catalog)
orchestrator = qemupull.Orchestrator.BatchOrchestrator(installer, catalog)

templates = qemupull.Template.scan_templates('/opt/unetlab/html/templates/intel/')
selection = qemupull.Template.Selection(qemupull.Template.filter_templates(templates, 'cisco'))
report = orchestrator.run(selection)
"""
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

__version__ = "0.1.0"

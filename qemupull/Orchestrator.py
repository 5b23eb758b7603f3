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
Batch installation across a selection of templates.
"""

import collections
import logging

import qemupull.Installer
import qemupull.QPException
import qemupull.qputil

# errors confined to a single template or image
UNIT_ERRORS = (qemupull.QPException.QPException,
               qemupull.qputil.SubprocessException, OSError)

TemplateReport = collections.namedtuple('TemplateReport', ['template', 'image_ids', 'results'])


class BatchReport(object):
    """
    Record of one orchestration run.  The templates member is a list of
    TemplateReport tuples in the order the templates were processed; a
    template whose search found nothing has an empty image_ids list.
    """
    def __init__(self):
        self.templates = []
        self.processed = set()
        self.cancelled = False

    @property
    def results(self):
        return [result for entry in self.templates for result in entry.results]

    @property
    def installed(self):
        return [r for r in self.results if r.success]

    @property
    def failed(self):
        return [r for r in self.results if not r.success]

    @property
    def skipped_templates(self):
        return [entry.template for entry in self.templates if not entry.image_ids]


class BatchOrchestrator(object):
    """
    Class that drives the installer over every image of every selected
    template.  It is a best-effort sweep: a template with no images or an
    image that could not be installed is logged and the sweep moves on.
    """
    def __init__(self, installer, catalog):
        self.installer = installer
        self.catalog = catalog
        self.log = logging.getLogger('%s.%s' % (__name__,
                                                self.__class__.__name__))

    def _run_template(self, template, report):
        """
        Internal method to search for and install the images of a template.
        """
        self.log.info("Searching for QEMU images for: %s", template.description)
        try:
            ids = list(self.catalog.search(template.name) or [])
        except qemupull.QPException.InstallCancelled:
            raise
        except UNIT_ERRORS as err:
            self.log.error("Search for %s failed: %s", template.name, err)
            ids = []

        entry = TemplateReport(template, ids, [])
        report.templates.append(entry)

        if not ids:
            self.log.info("No QEMU images found for prefix: %s-", template.name)
            return

        self.log.info("%d QEMU images found for: %s", len(ids), template.description)
        for image_id in ids:
            self.installer.check_cancelled()
            if image_id in report.processed:
                self.log.info("QEMU image with ID %s was already processed in this run, skipping.", image_id)
                continue
            report.processed.add(image_id)
            try:
                result = self.installer.install(image_id)
            except qemupull.QPException.InstallCancelled:
                raise
            except UNIT_ERRORS as err:
                self.log.error("Failed to install QEMU image with ID %s: %s", image_id, err)
                result = qemupull.Installer.AttemptResult(image_id, qemupull.Installer.ERROR, 0)
            entry.results.append(result)

    def run(self, selection):
        """
        Method to install the images for every template in selection, in
        order.  Returns a BatchReport.  Failures of individual images never
        stop the run; a cancellation request stops it before the next unit
        of work and is recorded in the report.
        """
        report = BatchReport()

        if not selection:
            self.log.warning("Nothing selected for installation.")
            return report

        try:
            for template in selection:
                self.installer.check_cancelled()
                self.log.info("Installing images for: %s", template.description)
                self._run_template(template, report)
        except qemupull.QPException.InstallCancelled:
            self.log.warning("Installation cancelled; no further images will be installed.")
            report.cancelled = True

        self.log.info("Batch finished: %d installed, %d failed, %d templates without images.",
                      len(report.installed), len(report.failed),
                      len(report.skipped_templates))

        return report

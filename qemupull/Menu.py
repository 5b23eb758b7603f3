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
Interactive, paginated template selection.
"""

import logging
import re

import rich.console
import rich.markup

import qemupull.Template


class Menu(object):
    """
    Class that lets the user filter the templates by keyword, pick one or
    all of them, and hands every confirmed selection to the orchestrator.
    The arguments are:

    templates    - The list of Template objects scanned from the catalog.
    orchestrator - The BatchOrchestrator that installs a Selection.
    console      - A rich Console to draw on (default: a new one).
    input_func   - Callable taking a prompt and returning a line of input
                   (default: console.input).
    page_size    - Number of templates shown per page.
    """
    def __init__(self, templates, orchestrator, console=None, input_func=None,
                 page_size=20):
        self.templates = templates
        self.orchestrator = orchestrator
        self.console = console
        if self.console is None:
            self.console = rich.console.Console()
        self.input_func = input_func
        if self.input_func is None:
            self.input_func = self.console.input
        if page_size < 1:
            page_size = 1
        self.page_size = page_size
        self.page = 0
        self.log = logging.getLogger('%s.%s' % (__name__,
                                                self.__class__.__name__))

    def _ask(self, prompt):
        return self.input_func(prompt).strip()

    def _confirm(self, question):
        return self._ask("%s (y/n): " % (question)) == 'y'

    def _num_pages(self, matched):
        return max(1, (len(matched) + self.page_size - 1) // self.page_size)

    def _show_page(self, matched):
        """
        Internal method to draw the current page of the list.
        """
        pages = self._num_pages(matched)
        self.page = min(self.page, pages - 1)
        first = self.page * self.page_size

        self.console.print("[bold green]Available Options:[/bold green]")
        self.console.print("---------------------------------------")
        for index, template in enumerate(matched[first:first + self.page_size], first + 1):
            self.console.print("[bold yellow]%2d. %s[/bold yellow]" % (index, rich.markup.escape(template.description)))
        self.console.print("[bold yellow] 0. Exit[/bold yellow]")
        if pages > 1:
            self.console.print("[cyan]Page %d of %d ('n' next, 'p' previous)[/cyan]" % (self.page + 1, pages))
        self.console.print()

    def _install(self, templates):
        selection = qemupull.Template.Selection(templates)
        return self.orchestrator.run(selection)

    def run(self, keyword=None):
        """
        Method to run the menu until the user exits.  If keyword is None the
        user is asked for one.  Returns the process exit status: 0 when the
        user exits, aborts, or installs everything; 1 when no template
        matches the keyword.
        """
        if keyword is None:
            self.console.print("[bold blue]Enter a keyword to filter descriptions (or press Enter to show all): [/bold blue]")
            keyword = self._ask("> ")
        keyword = keyword.lower()

        matched = qemupull.Template.filter_templates(self.templates, keyword)
        if not matched:
            self.log.error("No templates with descriptions matching '%s' found.", keyword)
            return 1

        while True:
            self._show_page(matched)

            self.console.print("[bold blue]Enter the number of the description you want to select ('all' to install all or 0 to exit):[/bold blue]")
            choice = self._ask("> ").lower()

            if choice == 'all':
                self.log.info("You selected to install all images matching the descriptions.")
                if not self._confirm("Are you sure you want to proceed?"):
                    self.log.info("Installation aborted by user.")
                    return 0
                report = self._install(matched)
                if not report.cancelled:
                    self.log.info("All images installed.")
                return 0

            if choice in ('n', 'p'):
                step = 1 if choice == 'n' else -1
                self.page = max(0, min(self._num_pages(matched) - 1, self.page + step))
                continue

            if not re.match(r'^[0-9]+$', choice) or int(choice) > len(matched):
                self.log.error("Invalid choice. Please enter a number between 0 and %d, or type 'all'.", len(matched))
                continue

            if int(choice) == 0:
                self.log.info("Exiting.")
                return 0

            template = matched[int(choice) - 1]
            self.log.info("You selected: %s - %s", template.name, template.description)

            if not self._confirm("Do you want to install images for %s?" % (template.name)):
                self.log.info("Installation aborted for %s by user.", template.name)
                continue

            report = self._install([template])
            if report.cancelled:
                return 0
            self.console.print("[cyan]Returning to menu...[/cyan]")
            self.console.print()

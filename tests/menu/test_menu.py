#!/usr/bin/python3

import sys
import os
import io
import logging

try:
    import pytest
except ImportError:
    print('Unable to import pytest.  Is pytest installed?')
    sys.exit(1)

# Find qemupull
prefix = '.'
for i in range(0,3):
    if os.path.isdir(os.path.join(prefix, 'qemupull')):
        sys.path.insert(0, prefix)
        break
    else:
        prefix = '../' + prefix

try:
    import rich.console
    import qemupull.Menu
    import qemupull.Orchestrator
    import qemupull.Template
except ImportError:
    print('Unable to import qemupull.  Is qemupull installed?')
    sys.exit(1)


class FakeOrchestrator(object):
    def __init__(self, cancel=False):
        self.selections = []
        self.cancel = cancel

    def run(self, selection):
        self.selections.append([t.name for t in selection])
        report = qemupull.Orchestrator.BatchReport()
        report.cancelled = self.cancel
        return report


def setup_menu(answers, count=3, page_size=20, cancel=False):
    templates = [qemupull.Template.Template('t%d' % (i), 'Template number %d' % (i))
                 for i in range(1, count + 1)]
    answers = list(answers)
    prompts = []

    def input_func(prompt):
        prompts.append(prompt)
        return answers.pop(0)

    output = io.StringIO()
    console = rich.console.Console(file=output, width=120)
    orchestrator = FakeOrchestrator(cancel)
    menu = qemupull.Menu.Menu(templates, orchestrator, console=console,
                              input_func=input_func, page_size=page_size)
    return menu, orchestrator, output, prompts


def test_exit_immediately():
    menu, orchestrator, output, prompts = setup_menu(['0'])
    assert(menu.run('') == 0)
    assert(orchestrator.selections == [])
    assert(' 1. Template number 1' in output.getvalue())
    assert(' 0. Exit' in output.getvalue())

def test_asks_for_keyword():
    menu, orchestrator, output, prompts = setup_menu(['NUMBER 2', '0'])
    assert(menu.run() == 0)
    assert(' 1. Template number 2' in output.getvalue())
    assert('Template number 1' not in output.getvalue())

def test_no_match(caplog):
    caplog.set_level(logging.INFO)
    menu, orchestrator, output, prompts = setup_menu([])
    assert(menu.run('juniper') == 1)
    assert("No templates with descriptions matching 'juniper' found." in caplog.text)

def test_install_single_then_exit():
    menu, orchestrator, output, prompts = setup_menu(['2', 'y', '0'])
    assert(menu.run('') == 0)
    assert(orchestrator.selections == [['t2']])
    assert('Do you want to install images for t2? (y/n): ' in prompts)
    assert('Returning to menu...' in output.getvalue())

def test_install_single_declined(caplog):
    caplog.set_level(logging.INFO)
    menu, orchestrator, output, prompts = setup_menu(['2', 'n', '0'])
    assert(menu.run('') == 0)
    assert(orchestrator.selections == [])
    assert("Installation aborted for t2 by user." in caplog.text)

def test_install_all():
    menu, orchestrator, output, prompts = setup_menu(['all', 'y'])
    assert(menu.run('') == 0)
    assert(orchestrator.selections == [['t1', 't2', 't3']])

def test_install_all_filtered():
    menu, orchestrator, output, prompts = setup_menu(['ALL', 'y'], count=12)
    assert(menu.run('number 1') == 0)
    assert(orchestrator.selections == [['t1', 't10', 't11', 't12']])

def test_install_all_declined(caplog):
    caplog.set_level(logging.INFO)
    menu, orchestrator, output, prompts = setup_menu(['all', 'no'])
    assert(menu.run('') == 0)
    assert(orchestrator.selections == [])
    assert("Installation aborted by user." in caplog.text)

def test_invalid_choices(caplog):
    caplog.set_level(logging.INFO)
    menu, orchestrator, output, prompts = setup_menu(['4', 'abc', '-1', '', '²', '٣', '0'])
    assert(menu.run('') == 0)
    assert(orchestrator.selections == [])
    assert(caplog.text.count("Invalid choice. Please enter a number between 0 and 3, or type 'all'.") == 6)

def test_pagination():
    menu, orchestrator, output, prompts = setup_menu(['n', 'n', 'n', 'p', '3', 'y', '0'],
                                                     count=5, page_size=2)
    assert(menu.run('') == 0)
    assert(orchestrator.selections == [['t3']])
    text = output.getvalue()
    assert('Page 1 of 3' in text)
    assert('Page 2 of 3' in text)
    assert('Page 3 of 3' in text)
    assert(' 5. Template number 5' in text)

def test_single_page_has_no_page_line():
    menu, orchestrator, output, prompts = setup_menu(['0'], count=2, page_size=2)
    menu.run('')
    assert('Page' not in output.getvalue())

def test_cancelled_run_leaves_menu():
    menu, orchestrator, output, prompts = setup_menu(['1', 'y'], cancel=True)
    assert(menu.run('') == 0)
    assert(orchestrator.selections == [['t1']])

#!/usr/bin/python3

import sys
import os
import logging
import threading

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
    import qemupull.Installer
    import qemupull.Orchestrator
    import qemupull.Policy
    import qemupull.Template
    import qemupull.qputil
except ImportError:
    print('Unable to import qemupull.  Is qemupull installed?')
    sys.exit(1)


class Recorder(object):
    def __init__(self):
        self.events = []

    def sleep(self, seconds):
        self.events.append(('sleep', seconds))

    def sample(self):
        self.events.append(('sample', 0))
        return 0


class StubCatalog(object):
    # search results keyed by prefix; fetch results keyed by image id
    def __init__(self, recorder, images, fetch_results=None):
        self.recorder = recorder
        self.images = images
        self.fetch_results = fetch_results or {}
        self.searched = []
        self.fetched = []

    def search(self, prefix):
        self.searched.append(prefix)
        return self.images.get(prefix, [])

    def fetch(self, image_id):
        self.fetched.append(image_id)
        self.recorder.events.append(('fetch', image_id))
        return self.fetch_results.get(image_id, True)


def setup_orchestrator(images, fetch_results=None, cancel_event=None, max_retries=1):
    policy = qemupull.Policy.InstallPolicy(cpu_threshold=70, cooldown_interval=5,
                                           pause_between_installs=10,
                                           max_retries=max_retries)
    recorder = Recorder()
    catalog = StubCatalog(recorder, images, fetch_results)
    installer = qemupull.Installer.RetryGatedInstaller(policy, recorder, catalog,
                                                       sleep=recorder.sleep,
                                                       clock=lambda: 0,
                                                       cancel_event=cancel_event)
    orchestrator = qemupull.Orchestrator.BatchOrchestrator(installer, catalog)
    return orchestrator, catalog, recorder


def make_selection(*names):
    return qemupull.Template.Selection([qemupull.Template.Template(name, 'Description of %s' % (name))
                                        for name in names])


def test_run_empty_then_success(caplog):
    caplog.set_level(logging.INFO)
    orchestrator, catalog, recorder = setup_orchestrator({'first': [], 'second': ['101']})

    report = orchestrator.run(make_selection('first', 'second'))

    assert(catalog.searched == ['first', 'second'])
    assert(catalog.fetched == ['101'])
    assert([t.name for t in report.skipped_templates] == ['first'])
    assert(len(report.installed) == 1)
    assert(report.failed == [])
    assert(not report.cancelled)
    assert("No QEMU images found for prefix: first-" in caplog.text)
    assert("Successfully installed QEMU image with ID 101." in caplog.text)
    assert(caplog.text.count("QEMU images found for:") == 1)

def test_run_preserves_order():
    orchestrator, catalog, recorder = setup_orchestrator({'b': ['3', '1'], 'a': ['2']})

    report = orchestrator.run(make_selection('b', 'a'))

    assert(catalog.searched == ['b', 'a'])
    assert(catalog.fetched == ['3', '1', '2'])
    assert([r.image_id for r in report.results] == ['3', '1', '2'])

def test_failure_does_not_stop_batch():
    orchestrator, catalog, recorder = setup_orchestrator({'a': ['1', '2'], 'b': ['3']},
                                                         fetch_results={'1': False})

    report = orchestrator.run(make_selection('a', 'b'))

    # image 1 is tried max_retries + 1 times, then the sweep moves on
    assert(catalog.fetched == ['1', '1', '2', '3'])
    assert([r.image_id for r in report.failed] == ['1'])
    assert([r.image_id for r in report.installed] == ['2', '3'])
    assert(report.failed[0].outcome == qemupull.Installer.EXHAUSTED)

def test_pause_between_images():
    orchestrator, catalog, recorder = setup_orchestrator({'a': ['1', '2']})

    orchestrator.run(make_selection('a'))

    events = recorder.events
    first = events.index(('fetch', '1'))
    second_sample = events.index(('sample', 0), first)
    assert(('sleep', 10) in events[first:second_sample])

def test_empty_selection(caplog):
    caplog.set_level(logging.INFO)
    orchestrator, catalog, recorder = setup_orchestrator({'a': ['1']})

    report = orchestrator.run(qemupull.Template.Selection([]))

    assert(catalog.searched == [])
    assert(report.templates == [])
    assert("Nothing selected for installation." in caplog.text)

def test_all_templates_empty():
    orchestrator, catalog, recorder = setup_orchestrator({})

    report = orchestrator.run(make_selection('a', 'b'))

    assert(catalog.fetched == [])
    assert(len(report.skipped_templates) == 2)
    assert(report.results == [])

def test_search_returning_none():
    orchestrator, catalog, recorder = setup_orchestrator({'a': None})

    report = orchestrator.run(make_selection('a'))

    assert(report.templates[0].image_ids == [])

def test_image_processed_once():
    orchestrator, catalog, recorder = setup_orchestrator({'a': ['1', '1'], 'b': ['1', '2']})

    report = orchestrator.run(make_selection('a', 'b'))

    assert(catalog.fetched == ['1', '2'])
    assert([r.image_id for r in report.results] == ['1', '2'])

def test_cancel_stops_before_next_unit():
    cancel = threading.Event()
    orchestrator, catalog, recorder = setup_orchestrator({'a': ['1', '2'], 'b': ['3']})
    original_fetch = catalog.fetch

    def fetch_then_cancel(image_id):
        cancel.set()
        return original_fetch(image_id)
    catalog.fetch = fetch_then_cancel
    orchestrator.installer.cancel_event = cancel

    report = orchestrator.run(make_selection('a', 'b'))

    assert(report.cancelled)
    assert(catalog.fetched == ['1'])
    assert(catalog.searched == ['a'])
    assert([r.image_id for r in report.results] == ['1'])

def test_sampler_error_does_not_stop_batch(caplog):
    caplog.set_level(logging.INFO)
    orchestrator, catalog, recorder = setup_orchestrator({'a': ['1', '2'], 'b': ['3']})
    calls = []

    def flaky_sample():
        calls.append(1)
        if len(calls) == 2:
            raise qemupull.qputil.SubprocessException("'top -bn1' failed(1)", 1)
        return 0
    recorder.sample = flaky_sample

    report = orchestrator.run(make_selection('a', 'b'))

    assert(catalog.fetched == ['1', '3'])
    assert([r.image_id for r in report.installed] == ['1', '3'])
    assert([r.image_id for r in report.failed] == ['2'])
    assert(report.failed[0].outcome == qemupull.Installer.ERROR)
    assert(not report.cancelled)
    assert("Failed to install QEMU image with ID 2" in caplog.text)

def test_search_error_skips_template(caplog):
    caplog.set_level(logging.INFO)
    orchestrator, catalog, recorder = setup_orchestrator({'b': ['3']})
    original_search = catalog.search

    def broken_search(prefix):
        if prefix == 'bad':
            raise OSError("ishare2 vanished")
        return original_search(prefix)
    catalog.search = broken_search

    report = orchestrator.run(make_selection('bad', 'b'))

    assert(catalog.fetched == ['3'])
    assert([t.name for t in report.skipped_templates] == ['bad'])
    assert("Search for bad failed: ishare2 vanished" in caplog.text)

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
Template descriptors and the catalog they are scanned from.
"""

import glob
import logging
import os

import yaml

import qemupull.QPException


class Template(object):
    """
    Class that represents a single template descriptor.  Objects of this
    type contain 3 pieces of information:

    name        - The file name of the descriptor minus the .yml extension.
                  This is the prefix used to search for images.
    description - The human readable description from the descriptor.
    path        - The descriptor file the template was loaded from.
    """
    __slots__ = ('_name', '_description', '_path')

    def __init__(self, name, description, path=None):
        if not name:
            raise qemupull.QPException.QPException("Template name cannot be empty")
        if not description:
            raise qemupull.QPException.QPException("Template '%s' has no description" % (name))
        self._name = name
        self._description = description
        self._path = path

    name = property(lambda self: self._name)
    description = property(lambda self: self._description)
    path = property(lambda self: self._path)

    def __eq__(self, other):
        if not isinstance(other, Template):
            return NotImplemented
        return (self._name, self._description) == (other._name, other._description)

    def __hash__(self):
        return hash((self._name, self._description))

    def __repr__(self):
        return "Template(%r, %r)" % (self._name, self._description)


class Selection(object):
    """
    An ordered, immutable collection of templates chosen for installation.
    """
    def __init__(self, templates):
        self._templates = tuple(templates)

    def __iter__(self):
        return iter(self._templates)

    def __len__(self):
        return len(self._templates)

    def __getitem__(self, index):
        return self._templates[index]

    def __repr__(self):
        return "Selection(%r)" % (list(self._templates),)


def _read_description(path):
    """
    Internal function to pull the description out of a descriptor file.
    Returns None if the file cannot be parsed or has no usable description.
    """
    log = logging.getLogger(__name__)
    try:
        with open(path, 'r') as f:
            doc = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as err:
        log.warning("Skipping unreadable template %s: %s", path, err)
        return None

    if not isinstance(doc, dict):
        return None

    description = doc.get('description')
    if description is None:
        return None

    return str(description).strip()


def scan_templates(template_dir):
    """
    Function to scan a directory for .yml descriptors.  Returns a list of
    Template objects sorted by file name.  Descriptors without a
    description are dropped, since they can never be selected.  Raises
    QPException if the directory holds no .yml files at all.
    """
    log = logging.getLogger(__name__)

    files = sorted(glob.glob(os.path.join(template_dir, '*.yml')))
    if not files:
        raise qemupull.QPException.QPException("No .yml files found in %s." % (template_dir))

    templates = []
    for path in files:
        description = _read_description(path)
        if not description:
            log.debug("Template %s has no description, skipping", path)
            continue
        name = os.path.splitext(os.path.basename(path))[0]
        templates.append(Template(name, description, path))

    return templates


def filter_templates(templates, keyword):
    """
    Function to filter a list of templates by keyword.  The keyword is
    matched case-insensitively anywhere in the description; an empty or
    None keyword matches everything.  Only the first template with a given
    description (ignoring case) is kept.
    """
    keyword = (keyword or '').strip().lower()

    seen = set()
    matched = []
    for template in templates:
        lower = template.description.lower()
        if keyword not in lower or lower in seen:
            continue
        seen.add(lower)
        matched.append(template)

    return matched

#!/usr/bin/env python3
#
# This file is part of django-pki.
#
# django-pki is free software: you can redistribute it and/or modify it under the terms of the GNU General
# Public License as published by the Free Software Foundation, either version 3 of the License, or (at your
# option) any later version.
#
# django-pki is distributed in the hope that it will be useful, but WITHOUT ANY WARRANTY; without even the
# implied warranty of MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the GNU General Public License
# for more details.
#
# You should have received a copy of the GNU General Public License along with django-pki. If not, see
# <http://www.gnu.org/licenses/>.

"""setuptools based setup.py file for django-pki.

Project metadata is defined in pyproject.toml, this file only configures the package layout.
"""

from setuptools import find_packages, setup

setup(
    # The "ca" package holds the settings used by the django-pki command.
    packages=find_packages("ca", exclude=("django_pki.tests", "django_pki.tests.base")),
    package_dir={"": "ca"},
)

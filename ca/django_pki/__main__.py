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

"""Command-line interface for django-pki.

Commands are Django management commands, hyphens in the command name are mapped to underscores, so
``django-pki create-intermediate`` runs the ``create_intermediate`` command.
"""

import os
import sys
from typing import Optional

from django.core.management import ManagementUtility


def get_argv(argv: list[str]) -> list[str]:
    """Map a hyphenated command name to the name of the management command."""
    if len(argv) > 1 and not argv[1].startswith("-"):
        return [argv[0], argv[1].replace("-", "_"), *argv[2:]]
    return argv


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the ``django-pki`` command."""
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ca.settings")
    if argv is None:
        argv = sys.argv
    utility = ManagementUtility(get_argv(argv))
    utility.execute()


if __name__ == "__main__":  # pragma: no cover
    main()

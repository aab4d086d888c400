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

"""Management command to revoke the intermediate authority.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from typing import Any

from django.core.management.base import CommandParser

from django_pki.constants import AuthorityKind, ReasonFlags
from django_pki.management.base import BaseCommand
from django_pki.management.mixins import RevokeCommandMixin


class Command(RevokeCommandMixin, BaseCommand):
    """Implement the :command:`manage.py revoke_intermediate` command."""

    help = "Revoke the certificate of the intermediate authority and regenerate the CRL of the root."

    def add_arguments(self, parser: CommandParser) -> None:
        self.add_reason(parser)

    def handle(self, reason: ReasonFlags, **options: Any) -> None:
        root = self.get_store(AuthorityKind.root)
        intermediate = self.get_store(AuthorityKind.intermediate)
        self.revoke(root, intermediate.certificate.serial_number, reason)

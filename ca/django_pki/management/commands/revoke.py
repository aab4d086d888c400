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

"""Management command to revoke a certificate.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from typing import Any

from django.core.management.base import CommandParser

from django_pki.constants import AuthorityKind, ReasonFlags
from django_pki.management.base import BaseCommand, add_certificate
from django_pki.management.mixins import RevokeCommandMixin


class Command(RevokeCommandMixin, BaseCommand):
    """Implement the :command:`manage.py revoke` command."""

    help = "Revoke a certificate issued by the intermediate authority and regenerate its CRL."

    def add_arguments(self, parser: CommandParser) -> None:
        add_certificate(parser)
        self.add_reason(parser)

    def handle(self, certificate: str, reason: ReasonFlags, **options: Any) -> None:
        store = self.get_store(AuthorityKind.intermediate)
        record, _cert = store.resolve_certificate(certificate)
        self.revoke(store, record.serial, reason)

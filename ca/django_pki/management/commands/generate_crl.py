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

"""Management command to generate a new certificate revocation list.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from typing import Any

from cryptography import x509

from django.core.management.base import CommandParser

from django_pki.management.base import BaseCommand, add_rootca
from django_pki.revocation import RevocationEngine


class Command(BaseCommand):
    """Implement the :command:`manage.py generate_crl` command."""

    help = "Generate a new CRL for the intermediate (or root) authority."

    def add_arguments(self, parser: CommandParser) -> None:
        add_rootca(parser)

    def handle(self, **options: Any) -> None:
        store = self.get_store(self.get_kind(options))
        crl = RevocationEngine(store).generate_crl()

        crl_number = crl.extensions.get_extension_for_class(x509.CRLNumber).value.crl_number
        self.stdout.write(f"Generated CRL number {crl_number} with {len(crl)} revoked certificate(s).")
        self.stdout.write(f"CRL: {store.crl_path}")

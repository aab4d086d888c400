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

"""Management command to show the current certificate revocation list.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from typing import Any

from cryptography import x509

from django.core.management.base import CommandParser

from django_pki.management.base import BaseCommand, add_rootca
from django_pki.utils import format_name_rfc4514, int_to_hex
from django_pki.verification import get_revocation_reason


class Command(BaseCommand):
    """Implement the :command:`manage.py list_crl` command."""

    help = "Show the current CRL of the intermediate (or root) authority."

    def add_arguments(self, parser: CommandParser) -> None:
        add_rootca(parser)

    def handle(self, **options: Any) -> None:
        store = self.get_store(self.get_kind(options))
        crl = store.load_crl()

        try:
            crl_number = crl.extensions.get_extension_for_class(x509.CRLNumber).value.crl_number
            self.stdout.write(f"CRL number: {int_to_hex(crl_number)}")
        except x509.ExtensionNotFound:
            pass

        self.stdout.write(f"Issuer: {format_name_rfc4514(crl.issuer)}")
        self.stdout.write(f"Last update: {crl.last_update_utc.isoformat()}")
        if crl.next_update_utc is not None:  # pragma: no branch  # we always set next_update
            self.stdout.write(f"Next update: {crl.next_update_utc.isoformat()}")

        entries = sorted(crl, key=lambda entry: entry.serial_number)
        self.stdout.write(f"Revoked certificates: {len(entries)}")
        for entry in entries:
            reason = get_revocation_reason(entry)
            revoked_at = entry.revocation_date_utc.isoformat()
            self.stdout.write(f"    {int_to_hex(entry.serial_number)}\t{revoked_at}\t{reason.value}")

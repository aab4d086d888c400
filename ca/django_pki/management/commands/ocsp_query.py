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

"""Management command to query an OCSP responder.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from typing import Any

from django.core.management.base import CommandParser

from django_pki.constants import OCSPStatus
from django_pki.management.base import BaseCommand, add_certificate, add_rootca
from django_pki.ocsp import OCSPResult, query


class Command(BaseCommand):
    """Implement the :command:`manage.py ocsp_query` command."""

    help = "Query the status of a certificate issued by the intermediate (or root) authority via OCSP."

    usage_exit_code = 0

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument("url", help="URL of the OCSP responder.")
        add_certificate(parser)
        add_rootca(parser)
        parser.add_argument(
            "--timeout", type=float, default=10.0, help="Timeout in seconds (default: %(default)s)."
        )

    def write_result(self, name: str, result: OCSPResult) -> None:
        """Write the result of the query."""
        self.stdout.write(f"{name}: {result.status.value}")
        if result.status == OCSPStatus.revoked:
            if result.reason is not None:  # pragma: no branch  # always set for revoked certificates
                self.stdout.write(f"\tReason: {result.reason.value}")
            if result.revoked_at is not None:  # pragma: no branch
                self.stdout.write(f"\tRevocation Time: {result.revoked_at.isoformat()}")
        if result.this_update is not None:  # pragma: no branch
            self.stdout.write(f"\tThis Update: {result.this_update.isoformat()}")
        if result.next_update is not None:
            self.stdout.write(f"\tNext Update: {result.next_update.isoformat()}")

    def handle(self, url: str, certificate: str, timeout: float, **options: Any) -> None:
        store = self.get_store(self.get_kind(options))
        cert = store.find_certificate(certificate)

        result = query(url, cert, store.certificate, timeout=timeout)
        self.write_result(certificate, result)

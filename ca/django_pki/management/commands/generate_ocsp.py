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

"""Management command to generate the key pair used for signing OCSP responses.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from datetime import timedelta
from typing import Any, Optional

from django.core.management.base import CommandParser

from django_pki.management.actions import ValidityAction
from django_pki.management.base import BaseCommand, add_rootca
from django_pki.ocsp import generate_responder_certificate


class Command(BaseCommand):
    """Implement the :command:`manage.py generate_ocsp` command."""

    help = """Generate a new private key and certificate for the OCSP responder of the intermediate (or root)
authority. Any existing responder key is replaced."""

    def add_arguments(self, parser: CommandParser) -> None:
        add_rootca(parser)
        parser.add_argument(
            "--validity",
            action=ValidityAction,
            help="Validity of the responder certificate in days (default: PKI_OCSP_RESPONDER_VALIDITY).",
        )

    def handle(self, validity: Optional[timedelta], **options: Any) -> None:
        store = self.get_store(self.get_kind(options))
        issued = generate_responder_certificate(store, validity=validity)

        self.stdout.write(f"Generated OCSP responder certificate {issued.record.hex_serial}.")
        self.stdout.write(f"Certificate: {issued.path}")

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

"""Management command to create the root certificate authority.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from typing import Any

from django.core.management.base import CommandParser

from django_pki.constants import AuthorityKind
from django_pki.exceptions import PKIError
from django_pki.management.base import BaseCommand, add_overwrite
from django_pki.revocation import RevocationEngine
from django_pki.utils import format_name_rfc4514


class Command(BaseCommand):
    """Implement the :command:`manage.py init` command."""

    help = "Create the root certificate authority (key pair and self-signed certificate)."

    def add_arguments(self, parser: CommandParser) -> None:
        add_overwrite(parser, "Discard an existing root authority (and everything it issued) first.")

    def handle(self, overwrite: bool, **options: Any) -> None:
        store = self.get_store(AuthorityKind.root, initialized=False)
        store.initialize(overwrite=overwrite)

        try:
            certificate = store.provision_root()
        except PKIError:
            # Discard the partially created authority
            store.remove()
            raise

        if store.config.crl_url is not None:
            RevocationEngine(store).generate_crl()

        self.stdout.write(f"Created root authority {format_name_rfc4514(certificate.subject)}.")
        self.stdout.write(f"Certificate: {store.cert_path()}")

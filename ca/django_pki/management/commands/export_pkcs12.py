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

"""Management command to export a private key and certificate as PKCS#12 bundle.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from typing import Any, Optional

from django.core.management.base import CommandParser

from django_pki.constants import AuthorityKind
from django_pki.exceptions import SecretError
from django_pki.management.base import BaseCommand
from django_pki.secrets import StaticSecretSource

#: Purpose used when reading the password of the bundle.
PURPOSE = "pkcs12"


class Command(BaseCommand):
    """Implement the :command:`manage.py export_pkcs12` command."""

    help = """Export the private key, certificate and certificate chain of a certificate issued by the
intermediate authority to a password-protected PKCS#12 bundle."""

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument("prefix", help="Prefix used when creating the certificate.")
        parser.add_argument(
            "--password",
            metavar="PASSWORD",
            help="Password for the bundle. If not given, the password is read from the terminal.",
        )

    def handle(self, prefix: str, password: Optional[str], **options: Any) -> None:
        store = self.get_store(AuthorityKind.intermediate)

        if password is None:
            secret = store.secrets.get_new(PURPOSE)
        else:
            secret = StaticSecretSource({PURPOSE: password}).get_new(PURPOSE)
        if secret is None:
            raise SecretError(f"{PURPOSE}: A password is required to export a bundle.")

        path = store.export_pkcs12(prefix, secret)
        self.stdout.write(f"Exported {prefix} to {path}.")

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

"""Management command to sign a certificate signing request.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from cryptography import x509

from django.core.management.base import CommandError, CommandParser

from django_pki.constants import AuthorityKind
from django_pki.issuer import CertificateIssuer
from django_pki.management.actions import ProfileAction, ValidityAction
from django_pki.management.base import BaseCommand
from django_pki.profiles import Profile
from django_pki.utils import int_to_hex


def load_csr(data: bytes) -> x509.CertificateSigningRequest:
    """Load a PEM or DER encoded certificate signing request."""
    if data.lstrip().startswith(b"-----BEGIN"):
        return x509.load_pem_x509_csr(data)
    return x509.load_der_x509_csr(data)


class Command(BaseCommand):
    """Implement the :command:`manage.py sign` command."""

    help = "Sign a certificate signing request with the intermediate authority."

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument("profile", action=ProfileAction, help="The profile of the certificate.")
        parser.add_argument("csr", metavar="csr-path", type=Path, help="Path to the CSR (PEM or DER).")
        parser.add_argument("out", metavar="cert-out-path", type=Path, help="Where to write the certificate.")
        parser.add_argument(
            "--validity",
            action=ValidityAction,
            help="Validity of the certificate in days (default: depends on the profile).",
        )

    def handle(
        self, profile: Profile, csr: Path, out: Path, validity: Optional[timedelta], **options: Any
    ) -> None:
        try:
            data = csr.read_bytes()
        except OSError as ex:
            raise CommandError(f"{csr}: Cannot read CSR: {ex.strerror}") from ex
        try:
            request = load_csr(data)
        except ValueError as ex:
            raise CommandError(f"{csr}: Cannot parse CSR: {ex}") from ex

        if out.exists():
            raise CommandError(f"{out}: File already exists.")

        store = self.get_store(AuthorityKind.intermediate)
        certificate = CertificateIssuer(store).sign_request(profile, request, validity=validity)
        store.write_certificate(certificate, out)

        self.stdout.write(f"Signed {profile.name} certificate {int_to_hex(certificate.serial_number)}.")
        self.stdout.write(f"Certificate: {out}")

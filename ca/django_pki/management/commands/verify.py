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

"""Management command to verify a certificate against the root authority.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from typing import Any

from django.core.management.base import CommandParser

from django_pki.constants import AuthorityKind
from django_pki.management.base import BaseCommand, add_certificate
from django_pki.verification import ChainVerifier


class Command(BaseCommand):
    """Implement the :command:`manage.py verify` command."""

    help = """Verify a certificate.

The certificate must chain to the root authority. Unless --no-crl-check is given, the certificate (and the
intermediate authority) are also checked against the CRL of the issuing authority."""

    def add_arguments(self, parser: CommandParser) -> None:
        add_certificate(parser)
        parser.add_argument(
            "--no-crl-check",
            dest="crl_check",
            action="store_false",
            default=True,
            help="Do not check if the certificate was revoked.",
        )

    def handle(self, certificate: str, crl_check: bool, **options: Any) -> None:
        root = self.get_store(AuthorityKind.root)
        intermediate = self.get_store(AuthorityKind.intermediate)
        verifier = ChainVerifier()
        root_certificate = root.certificate

        cert = intermediate.find_certificate(certificate)

        # Certificates issued by the root are checked against the CRL of the root
        issuing_store = intermediate
        intermediates = [intermediate.certificate]
        if cert.issuer == root_certificate.subject:
            issuing_store = root
            intermediates = []

        crl = None
        if crl_check and issuing_store.config.crl_url is not None:
            crl = issuing_store.load_crl()
        if crl_check and intermediates and root.crl_path.exists():
            verifier.verify(intermediate.certificate, root_certificate, crl=root.load_crl())

        verifier.verify(cert, root_certificate, intermediates, crl=crl)
        self.stdout.write(f"{certificate}: OK")

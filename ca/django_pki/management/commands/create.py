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

"""Management command to create a new end-entity certificate.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from datetime import timedelta
from typing import Any, Optional

from django.core.management.base import CommandError, CommandParser

from django_pki.constants import AuthorityKind
from django_pki.issuer import CertificateIssuer, SubjectRequest
from django_pki.management.actions import AlternativeNameAction, ProfileAction, ValidityAction
from django_pki.management.base import BaseCommand
from django_pki.profiles import Profile


class Command(BaseCommand):
    """Implement the :command:`manage.py create` command."""

    help = """Create a private key and a certificate signed by the intermediate authority.

The prefix is used as common name and as file name of the private key and certificate."""

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument("profile", action=ProfileAction, help="The profile of the certificate.")
        parser.add_argument("prefix", help="Common name of the certificate, e.g. www.example.com.")
        parser.add_argument(
            "-SAN",
            "--subject-alternative-name",
            dest="subject_alternative_names",
            action=AlternativeNameAction,
            help="Add subject alternative names (comma separated, e.g. DNS:example.com,IP:127.0.0.1). "
            "May be given multiple times.",
        )
        parser.add_argument(
            "--validity",
            action=ValidityAction,
            help="Validity of the certificate in days (default: depends on the profile).",
        )

    def handle(
        self,
        profile: Profile,
        prefix: str,
        subject_alternative_names: list[str],
        validity: Optional[timedelta],
        **options: Any,
    ) -> None:
        if "/" in prefix or prefix.startswith("."):
            raise CommandError(f"{prefix}: Prefix cannot be used as file name.")

        store = self.get_store(AuthorityKind.intermediate)
        subject_request = SubjectRequest(
            common_name=prefix,
            fields=store.config.subject,
            subject_alternative_names=tuple(subject_alternative_names),
        )
        issued = CertificateIssuer(store).issue(profile, subject_request, prefix=prefix, validity=validity)

        self.stdout.write(f"Created {profile.name} certificate {issued.record.hex_serial} for {prefix}.")
        self.stdout.write(f"Private key: {store.key_path(prefix)}")
        self.stdout.write(f"Certificate: {issued.path}")

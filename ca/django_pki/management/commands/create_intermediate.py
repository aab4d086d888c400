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

"""Management command to create the intermediate certificate authority.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

import logging
from typing import Any

from django.core.management.base import CommandParser

from django_pki.constants import AuthorityKind, ReasonFlags
from django_pki.exceptions import AlreadyRevokedError, NotFoundError, PKIError
from django_pki.management.base import BaseCommand, add_overwrite
from django_pki.revocation import RevocationEngine
from django_pki.utils import format_name_rfc4514, int_to_hex

log = logging.getLogger(__name__)


class Command(BaseCommand):
    """Implement the :command:`manage.py create_intermediate` command."""

    help = "Create the intermediate certificate authority, signed by the root authority."

    def add_arguments(self, parser: CommandParser) -> None:
        add_overwrite(
            parser,
            "Discard an existing intermediate authority first. Its certificate is revoked as superseded.",
        )

    def handle(self, overwrite: bool, **options: Any) -> None:
        root = self.get_store(AuthorityKind.root)
        store = self.get_store(AuthorityKind.intermediate, initialized=False)

        if overwrite and store.is_provisioned():
            serial = store.certificate.serial_number
            try:
                RevocationEngine(root).revoke(serial, ReasonFlags.superseded)
            except (AlreadyRevokedError, NotFoundError) as ex:
                log.info("%s: Not revoking old intermediate certificate: %s", int_to_hex(serial), ex)

        store.initialize(overwrite=overwrite)
        try:
            certificate = store.provision_intermediate(root)
        except PKIError:
            store.remove()
            raise

        if store.config.crl_url is not None:
            RevocationEngine(store).generate_crl()

        self.stdout.write(
            f"Created intermediate authority {format_name_rfc4514(certificate.subject)} "
            f"(serial {int_to_hex(certificate.serial_number)})."
        )
        self.stdout.write(f"Certificate: {store.cert_path()}")
        self.stdout.write(f"Chain: {store.chain_path}")

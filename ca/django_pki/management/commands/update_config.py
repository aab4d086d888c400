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

"""Management command to update the persisted configuration of the authorities.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from typing import Any

from django.core.management.base import CommandError

from django_pki.constants import AuthorityKind
from django_pki.management.base import BaseCommand


class Command(BaseCommand):
    """Implement the :command:`manage.py update_config` command."""

    help = """Update the persisted configuration (CRL and OCSP URLs, subject defaults) of all authorities
from the current settings. Certificates that were already issued are not changed."""

    def handle(self, **options: Any) -> None:
        updated = 0
        for kind in AuthorityKind:
            store = self.get_store(kind, initialized=False)
            if not store.exists():
                continue

            old = store.config
            new = store.update_config()
            if old == new:
                self.stdout.write(f"{store.name}: Configuration is up to date.")
            else:
                self.stdout.write(f"{store.name}: Updated configuration.")
            updated += 1

        if updated == 0:
            raise CommandError("No authority was initialized yet.")

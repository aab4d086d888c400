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

"""Management command to list all certificates issued by an authority.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

from typing import Any

from django.core.management.base import CommandParser

from django_pki.index import CertificateRecord, status_of
from django_pki.management.base import BaseCommand, add_rootca
from django_pki.utils import now as get_now


class Command(BaseCommand):
    """Implement the :command:`manage.py list` command."""

    help = "List all certificates issued by the intermediate (or root) authority."

    def add_arguments(self, parser: CommandParser) -> None:
        add_rootca(parser)

    def format_record(self, record: CertificateRecord, status: str) -> str:
        """Format a single record for output."""
        line = f"{record.hex_serial}\t{status}\t{record.not_after.isoformat()}\t{record.subject}"
        if record.revoked_at is not None and record.reason is not None:
            line += f"\t{record.revoked_at.isoformat()} ({record.reason.value})"
        return line

    def handle(self, **options: Any) -> None:
        store = self.get_store(self.get_kind(options))
        now = get_now()

        for record in store.index.list():
            self.stdout.write(self.format_record(record, status_of(record, now).name))

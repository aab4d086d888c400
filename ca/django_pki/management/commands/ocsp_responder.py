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

"""Management command to run an OCSP responder.

.. seealso:: https://docs.djangoproject.com/en/dev/howto/custom-management-commands/
"""

import logging
from typing import Any

from django.core.management.base import CommandParser
from django.core.servers.basehttp import get_internal_wsgi_application, run

from django_pki.management.actions import IntegerRangeAction
from django_pki.management.base import BaseCommand, add_rootca
from django_pki.ocsp import OCSPResponder

log = logging.getLogger(__name__)


class Command(BaseCommand):
    """Implement the :command:`manage.py ocsp_responder` command."""

    help = """Run an HTTP server answering OCSP requests for the intermediate (or root) authority.

Requests are answered at /ocsp/<authority>/ (POST) and /ocsp/<authority>/<base64-request> (GET). For
production use, serve the WSGI application with a dedicated application server instead."""

    usage_exit_code = 0

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "port", action=IntegerRangeAction, min=1, max=65535, metavar="port", help="Port to listen on."
        )
        parser.add_argument(
            "--address", default="0.0.0.0", help="Address to listen on (default: %(default)s)."  # noqa: S104
        )
        add_rootca(parser)

    def handle(self, port: int, address: str, **options: Any) -> None:
        store = self.get_store(self.get_kind(options))

        # Fail early if the responder cannot sign responses
        OCSPResponder(store).get_responder()

        url = f"http://{address}:{port}/ocsp/{store.name}/"
        self.stdout.write(f"Serving OCSP requests for {store.name} on {url}")
        log.info("%s: Starting OCSP responder on %s:%s.", store.name, address, port)
        run(address, port, get_internal_wsgi_application(), threading=True)

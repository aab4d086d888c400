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

"""Mixins for management commands."""

import typing
import warnings
from typing import Any

from django.core.management.base import CommandParser

from django_pki.constants import ReasonFlags
from django_pki.exceptions import CrlStaleWarning
from django_pki.management.actions import ReasonAction
from django_pki.revocation import RevocationEngine, RevocationResult

if typing.TYPE_CHECKING:
    from django.core.management.base import OutputWrapper

    from django_pki.store import AuthorityStore


class RevokeCommandMixin:
    """Mixin for commands that revoke a certificate and report the result."""

    stdout: "OutputWrapper"
    stderr: "OutputWrapper"

    def add_reason(self, parser: CommandParser) -> None:
        """Add the optional positional reason argument."""
        parser.add_argument(
            "reason",
            action=ReasonAction,
            nargs="?",
            help="Reason for the revocation, as name (e.g. keyCompromise) or code (default: unspecified).",
        )

    def revoke(self, store: "AuthorityStore", serial: int, reason: ReasonFlags) -> RevocationResult:
        """Revoke the certificate and write the result."""
        with warnings.catch_warnings():
            # The warning is written to stderr below
            warnings.simplefilter("ignore", CrlStaleWarning)
            result = RevocationEngine(store).revoke(serial, reason)

        self.stdout.write(f"Revoked {result.record.hex_serial} ({reason.value}).")
        if result.warning is not None:
            self.stderr.write(f"Warning: {result.warning}")
        elif result.crl is not None:
            self.stdout.write(f"CRL: {store.crl_path}")
        return result

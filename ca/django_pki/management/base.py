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

"""Command subclasses and argparse helpers for django-pki."""

import abc
import sys
from typing import Any, Optional

from django.core.management.base import BaseCommand as _BaseCommand, CommandError, CommandParser

from django_pki.constants import AuthorityKind
from django_pki.exceptions import NotFoundError, PKIError
from django_pki.secrets import PromptSecretSource, SecretSource, SettingsSecretSource
from django_pki.store import AuthorityStore


def add_rootca(parser: CommandParser) -> None:
    """Add the -rootca option to select the root instead of the intermediate authority."""
    parser.add_argument(
        "-rootca",
        "--rootca",
        dest="rootca",
        action="store_true",
        default=False,
        help="Use the root authority instead of the intermediate authority.",
    )


def add_certificate(parser: CommandParser) -> None:
    """Add the positional argument for a certificate given by path or prefix."""
    parser.add_argument(
        "certificate",
        metavar="cert-path|prefix",
        help="Path to a certificate or the prefix (or common name) used when creating it.",
    )


def add_overwrite(parser: CommandParser, help: str) -> None:  # pylint: disable=redefined-builtin
    """Add the --overwrite option."""
    parser.add_argument("--overwrite", action="store_true", default=False, help=help)


class BaseCommand(_BaseCommand, metaclass=abc.ABCMeta):
    """Base class for all django-pki management commands.

    Errors raised by the library are translated into :py:class:`~django:django.core.management.CommandError`
    with a message naming the step that failed.
    """

    # No checks are required, the commands work only on the PKI directory
    requires_system_checks = []  # type: ignore[assignment]

    #: Exit code used if the command line cannot be parsed.
    usage_exit_code = 1

    def run_from_argv(self, argv: list[str]) -> None:
        try:
            super().run_from_argv(argv)
        except SystemExit as ex:
            # argparse exits with 2 if the command line cannot be parsed
            if ex.code == 2:
                sys.exit(self.usage_exit_code)
            raise

    def execute(self, *args: Any, **options: Any) -> Optional[str]:
        try:
            return super().execute(*args, **options)
        except PKIError as ex:
            raise CommandError(str(ex)) from ex

    def get_secrets(self) -> SecretSource:
        """Get the source for passwords of private keys.

        Passwords that are not configured in the ``PKI_PASSWORDS`` setting are read from the terminal if
        there is one.
        """
        fallback = None
        if sys.stdin.isatty():
            fallback = PromptSecretSource()
        return SettingsSecretSource(fallback=fallback)

    def get_kind(self, options: dict[str, Any]) -> AuthorityKind:
        """Get the authority selected with the ``-rootca`` option."""
        if options.get("rootca"):
            return AuthorityKind.root
        return AuthorityKind.intermediate

    def get_store(self, kind: AuthorityKind, initialized: bool = True) -> AuthorityStore:
        """Get the store for the given authority.

        If `initialized` is ``True``, the authority must already have a certificate.
        """
        store = AuthorityStore(kind, secrets=self.get_secrets())
        if initialized and not store.is_provisioned():
            raise NotFoundError(
                f"{store.name}: Authority does not exist, create it first.", authority=store.name
            )
        return store

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

"""Sources for secrets (passwords) protecting private keys and exported bundles.

A secret source is asked for a secret for a given `purpose` (e.g. ``"root"``, ``"intermediate"`` or
``"pkcs12"``). When a *new* secret is requested (e.g. when a key is created), the source also collects a
confirmation, and the secret must satisfy the minimum length unless validation is explicitly waived.
"""

import abc
import getpass
from collections.abc import Mapping
from typing import Optional

from django_pki.conf import model_settings
from django_pki.exceptions import SecretError


class SecretSource(metaclass=abc.ABCMeta):
    """Base class for all secret sources."""

    def __init__(self, waive_validation: bool = False, min_length: Optional[int] = None) -> None:
        self.waive_validation = waive_validation
        self.min_length = min_length

    @abc.abstractmethod
    def read(self, purpose: str, confirm: bool) -> tuple[Optional[str], Optional[str]]:
        """Read the secret and (if `confirm` is ``True``) its confirmation.

        Return ``(None, None)`` if no secret is available for the given purpose.
        """

    def validate(self, purpose: str, value: str, confirmation: Optional[str]) -> None:
        """Validate a new secret."""
        if self.waive_validation:
            return

        min_length = self.min_length
        if min_length is None:
            min_length = model_settings.PKI_MIN_PASSWORD_LENGTH

        if len(value) < min_length:
            raise SecretError(f"{purpose}: Password must have at least {min_length} characters.")
        if confirmation != value:
            raise SecretError(f"{purpose}: Passwords do not match.")

    def get(self, purpose: str) -> Optional[bytes]:
        """Get an existing secret, e.g. to load a private key."""
        value, _confirmation = self.read(purpose, confirm=False)
        if value is None:
            return None
        return value.encode("utf-8")

    def get_new(self, purpose: str) -> Optional[bytes]:
        """Get a new secret, e.g. to protect a newly created private key."""
        value, confirmation = self.read(purpose, confirm=True)
        if value is None:
            return None
        self.validate(purpose, value, confirmation)
        return value.encode("utf-8")


class StaticSecretSource(SecretSource):
    """Secret source returning secrets from a fixed mapping."""

    def __init__(
        self, secrets: Mapping[str, str], waive_validation: bool = False, min_length: Optional[int] = None
    ) -> None:
        super().__init__(waive_validation=waive_validation, min_length=min_length)
        self.secrets = dict(secrets)

    def read(self, purpose: str, confirm: bool) -> tuple[Optional[str], Optional[str]]:
        value = self.secrets.get(purpose)
        return value, value


class SettingsSecretSource(SecretSource):
    """Secret source reading secrets from the ``PKI_PASSWORDS`` setting.

    If `fallback` is given, secrets that are not configured are read from it instead.
    """

    def __init__(
        self,
        fallback: Optional[SecretSource] = None,
        waive_validation: bool = False,
        min_length: Optional[int] = None,
    ) -> None:
        super().__init__(waive_validation=waive_validation, min_length=min_length)
        self.fallback = fallback

    def read(self, purpose: str, confirm: bool) -> tuple[Optional[str], Optional[str]]:
        passwords = {kind.value: value for kind, value in model_settings.PKI_PASSWORDS.items()}
        if purpose in passwords:
            value = passwords[purpose]
            return value, value
        if self.fallback is not None:
            return self.fallback.read(purpose, confirm)
        return None, None


class PromptSecretSource(SecretSource):
    """Secret source prompting the user on the terminal."""

    def read(self, purpose: str, confirm: bool) -> tuple[Optional[str], Optional[str]]:
        try:
            value = getpass.getpass(prompt=f"Password for {purpose}: ")
            confirmation = None
            if confirm:
                confirmation = getpass.getpass(prompt=f"Verifying - Password for {purpose}: ")
        except (EOFError, KeyboardInterrupt) as ex:
            raise SecretError(f"{purpose}: Could not read password.") from ex
        return value, confirmation

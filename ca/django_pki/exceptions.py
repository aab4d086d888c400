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

"""Exceptions raised by django-pki.

Every exception carries the context it was raised in (authority, serial, path and the failing step), so that
management commands can print a message naming the step that failed.
"""

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from datetime import datetime

    from django_pki.constants import ReasonFlags


class PKIError(Exception):
    """Base class for all errors raised by django-pki."""

    #: Name of the step that failed, used as prefix in error messages.
    step = "pki"

    def __init__(
        self,
        message: str,
        *,
        authority: Optional[str] = None,
        serial: Optional[int] = None,
        path: Optional[Any] = None,
        step: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.authority = authority
        self.serial = serial
        self.path = path
        if step is not None:
            self.step = step

    def __str__(self) -> str:
        return f"{self.step}: {self.message}"


class StorageError(PKIError):
    """A file of an authority could not be read or written."""

    step = "storage"


class AlreadyExistsError(PKIError):
    """An authority or certificate already exists."""

    step = "exists"


class DuplicateSerialError(PKIError):
    """A serial was added to the index twice."""

    step = "index"


class NotFoundError(PKIError):
    """A serial or certificate is not known."""

    step = "lookup"


class AlreadyRevokedError(PKIError):
    """A certificate that is already revoked was revoked again."""

    step = "revoke"


class PolicyMismatchError(PKIError):
    """The subject of a request does not match the issuer as required by the ``strict`` policy."""

    step = "policy"


class ValidityExceededError(PKIError):
    """The requested validity would outlive the issuing authority."""

    step = "validity"


class ChainError(PKIError):
    """A certificate chain could not be verified."""

    step = "verify"


class RevokedError(ChainError):
    """A certificate in the chain is revoked."""

    def __init__(
        self,
        message: str,
        *,
        reason: "ReasonFlags",
        revoked_at: Optional["datetime"] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.reason = reason
        self.revoked_at = revoked_at


class CrlNotConfigured(PKIError):
    """The authority has no CRL distribution point."""

    step = "crl"


class OcspNotConfigured(PKIError):
    """The authority has no OCSP responder."""

    step = "ocsp"


class OcspResponseError(PKIError):
    """An OCSP responder returned an unsuccessful or invalid response."""

    step = "ocsp"


class CryptoProviderError(PKIError):
    """The cryptographic provider failed."""

    step = "crypto"


class SecretError(PKIError):
    """A secret (password) could not be obtained or does not satisfy the requirements."""

    step = "secret"


class CrlStaleWarning(UserWarning):
    """Warning issued if the CRL could not be regenerated after a revocation."""

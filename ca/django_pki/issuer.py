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

"""Issue certificates signed by an authority."""

import contextlib
import logging
import typing
from collections.abc import Sequence
from datetime import timedelta
from pathlib import Path
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

from django_pki.conf import model_settings
from django_pki.constants import Policy
from django_pki.crypto import PrivateKeyTypes
from django_pki.exceptions import AlreadyExistsError, PolicyMismatchError, StorageError, ValidityExceededError
from django_pki.index import CertificateRecord
from django_pki.profiles import Profile
from django_pki.utils import (
    atomic_write,
    build_subject,
    format_name_rfc4514,
    get_common_name,
    int_to_hex,
    now as get_now,
    parse_general_name,
)

if typing.TYPE_CHECKING:
    from django_pki.store import AuthorityStore

log = logging.getLogger(__name__)


class SubjectRequest(BaseModel):
    """The subject and subject alternative names of a new certificate."""

    model_config = ConfigDict(frozen=True)

    common_name: str = Field(min_length=1)
    fields: dict[str, str] = Field(default_factory=dict)
    subject_alternative_names: tuple[str, ...] = ()

    @field_validator("subject_alternative_names")
    @classmethod
    def validate_subject_alternative_names(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        """Validate that all names can be parsed."""
        for name in value:
            parse_general_name(name)
        return value

    @property
    def name(self) -> x509.Name:
        """The subject as :py:class:`~cg:cryptography.x509.Name`."""
        return build_subject(self.fields, common_name=self.common_name)

    def get_subject_alternative_names(self) -> list[x509.GeneralName]:
        """The parsed subject alternative names."""
        return [parse_general_name(name) for name in self.subject_alternative_names]


class IssuedCertificate(NamedTuple):
    """Result of issuing a certificate."""

    record: CertificateRecord
    certificate: x509.Certificate
    private_key: Optional[PrivateKeyTypes] = None
    path: Optional[Path] = None


def get_subject_alternative_names(csr: x509.CertificateSigningRequest) -> list[x509.GeneralName]:
    """Get the subject alternative names requested in a CSR."""
    try:
        extension = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return list(extension.value)


def check_policy(policy: Policy, subject: x509.Name, issuer: x509.Name) -> None:
    """Check that `subject` satisfies the given `policy` with regard to `issuer`.

    With the ``strict`` policy, all fields except the common name must be identical to the fields of the
    issuer and a common name is required. The ``loose`` policy accepts any subject.
    """
    if policy == Policy.loose:
        return

    if not subject.get_attributes_for_oid(NameOID.COMMON_NAME):
        raise PolicyMismatchError("Subject has no common name.")

    requested = {(attr.oid, attr.value) for attr in subject if attr.oid != NameOID.COMMON_NAME}
    expected = {(attr.oid, attr.value) for attr in issuer if attr.oid != NameOID.COMMON_NAME}
    if requested != expected:
        raise PolicyMismatchError(
            f"{format_name_rfc4514(subject)}: Subject does not match the issuer "
            f"({format_name_rfc4514(issuer)})."
        )


class CertificateIssuer:
    """Issues certificates signed by the authority in `store`."""

    def __init__(self, store: "AuthorityStore") -> None:
        self.store = store

    def __repr__(self) -> str:
        return f"<CertificateIssuer: {self.store.name}>"

    def issue(
        self,
        profile: Profile,
        subject_request: SubjectRequest,
        prefix: Optional[str] = None,
        validity: Optional[timedelta] = None,
        encrypt: bool = True,
    ) -> IssuedCertificate:
        """Generate a private key and issue a certificate for it.

        The private key is written to ``private/<prefix>.key.pem`` and the certificate to
        ``certs/<prefix>.cert.pem``. The default `prefix` is the common name.
        """
        store = self.store
        if prefix is None:
            prefix = subject_request.common_name

        key_path = store.key_path(prefix)
        cert_path = store.cert_path(prefix)
        for path in (key_path, cert_path):
            if path.exists():
                raise AlreadyExistsError(f"{path}: File already exists.", authority=store.name, path=path)

        password = store.secrets.get_new(prefix) if encrypt else None

        # Key generation is expensive and happens before any lock is taken
        private_key = store.provider.generate_private_key(model_settings.PKI_KEY_TYPE)

        extensions: list[x509.Extension[x509.ExtensionType]] = []
        subject_alternative_names = subject_request.get_subject_alternative_names()
        if subject_alternative_names:
            extensions.append(
                x509.Extension(
                    oid=x509.SubjectAlternativeName.oid,
                    critical=False,
                    value=x509.SubjectAlternativeName(subject_alternative_names),
                )
            )
        csr = store.provider.build_csr(private_key, subject_request.name, extensions)
        try:
            atomic_write(store.csr_path(prefix), csr.public_bytes(Encoding.PEM))
        except OSError as ex:
            raise StorageError(f"Cannot write CSR: {ex}", authority=store.name, step="csr") from ex

        issuer_key = store.load_private_key()
        with store.lock():
            certificate = self.sign_request(
                profile, csr, prefix=prefix, validity=validity, locked=True, issuer_key=issuer_key
            )
            store.write_private_key(private_key, prefix, password)

        record = store.index.get(certificate.serial_number)
        return IssuedCertificate(
            record=record, certificate=certificate, private_key=private_key, path=cert_path
        )

    def sign_request(
        self,
        profile: Profile,
        csr: x509.CertificateSigningRequest,
        prefix: Optional[str] = None,
        validity: Optional[timedelta] = None,
        subject_alternative_names: Sequence[x509.GeneralName] = (),
        locked: bool = False,
        issuer_key: Optional[PrivateKeyTypes] = None,
    ) -> x509.Certificate:
        """Sign a certificate signing request.

        Pass ``locked=True`` if the caller already holds the lock of the authority. Such callers must also
        pass ``issuer_key``, loaded before the lock was taken.
        """
        store = self.store
        config = store.config
        issuer_certificate = store.certificate
        store.provider.verify_csr(csr)

        check_policy(profile.policy, csr.subject, issuer_certificate.subject)

        if validity is None:
            validity = profile.validity
        not_before = get_now()
        not_after = not_before + validity
        if not_after > issuer_certificate.not_valid_after_utc:
            raise ValidityExceededError(
                f"Certificate would be valid until {not_after.isoformat()}, but the issuer expires on "
                f"{issuer_certificate.not_valid_after_utc.isoformat()}.",
                authority=store.name,
            )

        # Load the private key before taking the lock, as it might require a password
        if issuer_key is None:
            issuer_key = store.load_private_key()
        names = get_subject_alternative_names(csr) + list(subject_alternative_names)
        extensions = profile.get_extensions(
            subject=csr.subject,
            public_key=csr.public_key(),  # type: ignore[arg-type]  # only RSA/EC keys are supported
            issuer_public_key=issuer_key.public_key(),
            subject_alternative_names=names,
            crl_url=config.crl_url,
            ocsp_url=config.ocsp_url,
        )

        lock = contextlib.nullcontext() if locked else store.lock()
        with lock:
            serial = store.serials.next()
            step = "sign"
            try:
                certificate = store.provider.sign_certificate(
                    issuer_key,
                    issuer=issuer_certificate.subject,
                    subject=csr.subject,
                    public_key=csr.public_key(),  # type: ignore[arg-type]
                    serial=serial,
                    not_before=not_before,
                    not_after=not_after,
                    extensions=extensions,
                )
                step = "index"
                record = CertificateRecord.from_certificate(certificate, store.newcert_filename(serial))
                store.index.append(record)
            except Exception:
                store.serials.skip(serial, step)
                raise

            store.write_certificate(certificate, store.path / record.filename)
            if prefix is not None:
                store.write_certificate(certificate, store.cert_path(prefix))

        log.info(
            "%s: Issued %s certificate %s for %s.",
            store.name,
            profile.name,
            int_to_hex(serial),
            get_common_name(certificate.subject) or format_name_rfc4514(certificate.subject),
        )
        return certificate

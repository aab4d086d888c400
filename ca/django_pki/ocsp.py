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

"""OCSP status resolution, responses and queries.

The responder signs responses with a dedicated key pair issued by the same authority (see
:py:func:`~django_pki.ocsp.generate_responder_certificate`), so the authority key itself is never needed for
answering requests.
"""

import logging
import os
import typing
from datetime import datetime, timedelta
from typing import NamedTuple, Optional

import requests

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from cryptography.x509 import ExtensionNotFound, OCSPNonce, ocsp
from cryptography.x509.oid import ExtendedKeyUsageOID

from django_pki import constants
from django_pki.conf import model_settings
from django_pki.constants import CRL_REASONS, OCSPStatus, ReasonFlags, Status
from django_pki.crypto import PrivateKeyTypes, verify_signature
from django_pki.exceptions import NotFoundError, OcspNotConfigured, OcspResponseError
from django_pki.index import status_of
from django_pki.issuer import CertificateIssuer, IssuedCertificate, SubjectRequest
from django_pki.profiles import OCSP
from django_pki.utils import int_to_hex, now as get_now

if typing.TYPE_CHECKING:
    from pathlib import Path

    from django_pki.store import AuthorityStore

log = logging.getLogger(__name__)

#: Mapping of OCSP certificate status to the status used by django-pki.
OCSP_CERT_STATUS = {
    ocsp.OCSPCertStatus.GOOD: OCSPStatus.good,
    ocsp.OCSPCertStatus.REVOKED: OCSPStatus.revoked,
    ocsp.OCSPCertStatus.UNKNOWN: OCSPStatus.unknown,
}

#: Mapping of django-pki status to OCSP certificate status.
CERT_STATUS = {value: key for key, value in OCSP_CERT_STATUS.items()}


class OCSPResult(NamedTuple):
    """Status of a certificate as reported via OCSP."""

    status: OCSPStatus
    reason: Optional[ReasonFlags] = None
    revoked_at: Optional[datetime] = None
    this_update: Optional[datetime] = None
    next_update: Optional[datetime] = None


class OCSPResolver:
    """Resolves the OCSP status of certificates issued by the authority in `store`.

    The resolver takes no locks, it only reads the index, which is always replaced atomically.
    """

    def __init__(self, store: "AuthorityStore") -> None:
        self.store = store

    def resolve(self, serial: int, now: Optional[datetime] = None) -> OCSPResult:
        """Get the OCSP status of the certificate with the given serial."""
        if now is None:
            now = get_now()

        try:
            record = self.store.index.get(serial)
        except NotFoundError:
            return OCSPResult(status=OCSPStatus.unknown)

        # Expired certificates were never revoked and are thus reported as good.
        if status_of(record, now) == Status.revoked:
            return OCSPResult(status=OCSPStatus.revoked, reason=record.reason, revoked_at=record.revoked_at)
        return OCSPResult(status=OCSPStatus.good)


def get_issuer_hashes(issuer: x509.Certificate, algorithm: hashes.HashAlgorithm) -> tuple[bytes, bytes]:
    """Get the issuer name hash and issuer key hash as used in OCSP requests (RFC 6960, section 4.1.1)."""
    name_hash = hashes.Hash(algorithm)
    name_hash.update(issuer.subject.public_bytes())

    public_key = issuer.public_key()
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        key_bits = public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
    elif isinstance(public_key, rsa.RSAPublicKey):
        key_bits = public_key.public_bytes(Encoding.DER, PublicFormat.PKCS1)
    else:
        raise ValueError(f"{type(public_key)}: Unsupported public key type.")

    key_hash = hashes.Hash(algorithm)
    key_hash.update(key_bits)
    return name_hash.finalize(), key_hash.finalize()


def get_responder_subject(store: "AuthorityStore") -> SubjectRequest:
    """Get the subject for the OCSP responder certificate of an authority."""
    config = store.config
    return SubjectRequest(common_name=f"{config.common_name} OCSP Responder", fields=config.subject)


def generate_responder_certificate(
    store: "AuthorityStore", validity: Optional[timedelta] = None
) -> IssuedCertificate:
    """Issue a new key pair for signing OCSP responses, replacing any previous one.

    The private key of the responder is not encrypted, as it has to be available to the responder.
    """
    if store.config.ocsp_url is None:
        raise OcspNotConfigured(
            f"{store.name}: Authority has no OCSP responder configured.", authority=store.name
        )

    # The previous key pair is moved aside and only removed once the new one was issued
    backups: list[tuple["Path", "Path"]] = []
    for path in (store.key_path(constants.OCSP_PREFIX), store.cert_path(constants.OCSP_PREFIX)):
        if path.exists():
            backup = path.with_name(f"{path.name}.old")
            os.replace(path, backup)
            backups.append((path, backup))

    try:
        issued = CertificateIssuer(store).issue(
            OCSP, get_responder_subject(store), prefix=constants.OCSP_PREFIX, validity=validity, encrypt=False
        )
    except Exception:
        for path, backup in backups:
            path.unlink(missing_ok=True)
            os.replace(backup, path)
        log.error("%s: Could not generate OCSP responder certificate, kept the old one.", store.name)
        raise

    for path, backup in backups:
        log.info("%s: Removing old OCSP responder file %s.", store.name, path)
        backup.unlink()
    log.info("%s: Generated OCSP responder certificate %s.", store.name, issued.record.hex_serial)
    return issued


class OCSPResponder:
    """Builds signed OCSP responses for the authority in `store`.

    Raises :py:class:`~django_pki.exceptions.OcspNotConfigured` if the authority has no OCSP responder.
    """

    def __init__(self, store: "AuthorityStore", resolver: Optional[OCSPResolver] = None) -> None:
        if store.config.ocsp_url is None:
            raise OcspNotConfigured(
                f"{store.name}: Authority has no OCSP responder configured.", authority=store.name
            )
        if resolver is None:
            resolver = OCSPResolver(store)

        self.store = store
        self.resolver = resolver
        self._responder: Optional[tuple[PrivateKeyTypes, x509.Certificate]] = None

    def get_responder(self) -> tuple[PrivateKeyTypes, x509.Certificate]:
        """Get the private key and certificate used to sign OCSP responses."""
        if self._responder is None:
            private_key = self.store.load_private_key(constants.OCSP_PREFIX)
            certificate = self.store.load_certificate(self.store.cert_path(constants.OCSP_PREFIX))
            self._responder = private_key, certificate
        return self._responder

    def fail(
        self, status: ocsp.OCSPResponseStatus = ocsp.OCSPResponseStatus.INTERNAL_ERROR
    ) -> ocsp.OCSPResponse:
        """Get an unsuccessful response."""
        return ocsp.OCSPResponseBuilder.build_unsuccessful(status)

    def respond(self, data: bytes, now: Optional[datetime] = None) -> ocsp.OCSPResponse:
        """Get the response for a DER encoded OCSP request."""
        try:
            request = ocsp.load_der_ocsp_request(data)
        except (ValueError, NotImplementedError) as ex:
            log.warning("%s: Malformed OCSP request: %s", self.store.name, ex)
            return self.fail(ocsp.OCSPResponseStatus.MALFORMED_REQUEST)

        # Fail if there are any critical extensions that we do not understand
        for ext in request.extensions:
            if ext.critical and not isinstance(ext.value, OCSPNonce):
                return self.fail(ocsp.OCSPResponseStatus.MALFORMED_REQUEST)

        issuer = self.store.certificate
        name_hash, key_hash = get_issuer_hashes(issuer, request.hash_algorithm)
        if request.issuer_name_hash != name_hash or request.issuer_key_hash != key_hash:
            log.warning(
                "%s: OCSP request for %s from a different issuer received.",
                self.store.name,
                int_to_hex(request.serial_number),
            )
            return self.fail(ocsp.OCSPResponseStatus.UNAUTHORIZED)

        if now is None:
            now = get_now()
        result = self.resolver.resolve(request.serial_number, now=now)
        log.debug("%s: %s is %s.", self.store.name, int_to_hex(request.serial_number), result.status.value)

        revocation_reason = None
        if result.reason is not None and result.reason != ReasonFlags.unspecified:
            revocation_reason = CRL_REASONS[result.reason]

        builder = ocsp.OCSPResponseBuilder()
        builder = builder.add_response_by_hash(
            issuer_name_hash=name_hash,
            issuer_key_hash=key_hash,
            serial_number=request.serial_number,
            # The algorithm used must be the same as in the request, or "openssl ocsp" won't be able to
            # determine the status.
            algorithm=request.hash_algorithm,
            cert_status=CERT_STATUS[result.status],
            this_update=now,
            next_update=now + model_settings.PKI_OCSP_RESPONSE_VALIDITY,
            revocation_time=result.revoked_at,
            revocation_reason=revocation_reason,
        )

        # Add OCSP nonce if present
        try:
            nonce = request.extensions.get_extension_for_class(OCSPNonce)
            builder = builder.add_extension(nonce.value, critical=nonce.critical)
        except ExtensionNotFound:
            pass

        private_key, certificate = self.get_responder()
        return self.store.provider.sign_ocsp_response(private_key, certificate, builder)


def verify_response_signature(response: ocsp.OCSPResponse, responder: x509.Certificate) -> bool:
    """Return ``True`` if `response` was signed by `responder`."""
    public_key = responder.public_key()
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(
                response.signature,
                response.tbs_response_bytes,
                padding.PKCS1v15(),
                response.signature_hash_algorithm,  # type: ignore[arg-type]
            )
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(
                response.signature,
                response.tbs_response_bytes,
                ec.ECDSA(response.signature_hash_algorithm),  # type: ignore[arg-type]
            )
        else:
            return False
    except InvalidSignature:
        return False
    return True


def check_responder(responder: x509.Certificate, issuer: x509.Certificate) -> None:
    """Check that `responder` may sign OCSP responses for certificates issued by `issuer`."""
    if responder == issuer:
        return

    if not verify_signature(responder, issuer):
        raise OcspResponseError("Responder certificate was not issued by the issuer of the certificate.")

    try:
        extended_key_usage = responder.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    except ExtensionNotFound as ex:
        raise OcspResponseError("Responder certificate has no ExtendedKeyUsage extension.") from ex
    if ExtendedKeyUsageOID.OCSP_SIGNING not in extended_key_usage:
        raise OcspResponseError("Responder certificate is not allowed to sign OCSP responses.")


def query(
    url: str,
    certificate: x509.Certificate,
    issuer: x509.Certificate,
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
) -> OCSPResult:
    """Query the OCSP responder at `url` for the status of `certificate` and verify the response."""
    builder = ocsp.OCSPRequestBuilder()
    builder = builder.add_certificate(certificate, issuer, hashes.SHA1())  # noqa: S303  # SHA1 is standard
    nonce = os.urandom(16)
    builder = builder.add_extension(OCSPNonce(nonce), critical=False)
    request = builder.build()

    if session is None:
        session = requests.Session()

    try:
        http_response = session.post(
            url,
            data=request.public_bytes(Encoding.DER),
            headers={"Content-Type": "application/ocsp-request"},
            timeout=timeout,
        )
        http_response.raise_for_status()
    except requests.RequestException as ex:
        raise OcspResponseError(f"{url}: Request failed: {ex}") from ex

    try:
        response = ocsp.load_der_ocsp_response(http_response.content)
    except ValueError as ex:
        raise OcspResponseError(f"{url}: Cannot parse response: {ex}") from ex

    if response.response_status != ocsp.OCSPResponseStatus.SUCCESSFUL:
        raise OcspResponseError(f"{url}: Responder returned {response.response_status.name}.")

    if response.serial_number != certificate.serial_number:
        raise OcspResponseError(f"{url}: Response is for a different certificate.")

    responders = response.certificates or [issuer]
    responder = responders[0]
    check_responder(responder, issuer)
    if not verify_response_signature(response, responder):
        raise OcspResponseError(f"{url}: Response has an invalid signature.")

    try:
        response_nonce = response.extensions.get_extension_for_class(OCSPNonce).value.nonce
    except ExtensionNotFound:
        response_nonce = None
    if response_nonce is not None and response_nonce != nonce:
        raise OcspResponseError(f"{url}: Response contains a different nonce.")

    reason = None
    revoked_at = None
    if response.certificate_status == ocsp.OCSPCertStatus.REVOKED:
        revoked_at = response.revocation_time_utc
        if response.revocation_reason is None:
            reason = ReasonFlags.unspecified
        else:
            reason = ReasonFlags[response.revocation_reason.name]

    return OCSPResult(
        status=OCSP_CERT_STATUS[response.certificate_status],
        reason=reason,
        revoked_at=revoked_at,
        this_update=response.this_update_utc,
        next_update=response.next_update_utc,
    )

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

"""Cryptographic providers used for generating keys and signing certificates and revocation lists.

All cryptographic operations go through a provider, so that an alternative implementation can be configured
using the ``PKI_CRYPTO_PROVIDER`` setting.
"""

import abc
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Literal, Optional, Union

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import Encoding, PrivateFormat, pkcs12
from cryptography.x509 import ocsp

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from django_pki.conf import model_settings
from django_pki.exceptions import CryptoProviderError

log = logging.getLogger(__name__)

PrivateKeyTypes = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]
PublicKeyTypes = Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey]
KeyTypes = Literal["RSA", "EC"]


class CryptoProvider(metaclass=abc.ABCMeta):
    """Base class for all cryptographic providers."""

    @abc.abstractmethod
    def generate_private_key(
        self,
        key_type: KeyTypes,
        key_size: Optional[int] = None,
        elliptic_curve: Optional[ec.EllipticCurve] = None,
    ) -> PrivateKeyTypes:
        """Generate a new private key."""

    @abc.abstractmethod
    def build_csr(
        self,
        private_key: PrivateKeyTypes,
        subject: x509.Name,
        extensions: Sequence[x509.Extension[x509.ExtensionType]] = (),
        algorithm: Optional[hashes.HashAlgorithm] = None,
    ) -> x509.CertificateSigningRequest:
        """Build a certificate signing request signed with `private_key`."""

    @abc.abstractmethod
    def sign_certificate(
        self,
        private_key: PrivateKeyTypes,
        issuer: x509.Name,
        subject: x509.Name,
        public_key: PublicKeyTypes,
        serial: int,
        not_before: datetime,
        not_after: datetime,
        extensions: Sequence[x509.Extension[x509.ExtensionType]],
        algorithm: Optional[hashes.HashAlgorithm] = None,
    ) -> x509.Certificate:
        """Sign a certificate with the given values."""

    @abc.abstractmethod
    def sign_crl(
        self,
        private_key: PrivateKeyTypes,
        builder: x509.CertificateRevocationListBuilder,
        algorithm: Optional[hashes.HashAlgorithm] = None,
    ) -> x509.CertificateRevocationList:
        """Sign a certificate revocation list."""

    @abc.abstractmethod
    def sign_ocsp_response(
        self,
        private_key: PrivateKeyTypes,
        responder_certificate: x509.Certificate,
        builder: ocsp.OCSPResponseBuilder,
    ) -> ocsp.OCSPResponse:
        """Sign an OCSP response."""

    @abc.abstractmethod
    def serialize_private_key(self, private_key: PrivateKeyTypes, password: Optional[bytes]) -> bytes:
        """Serialize a private key as PEM, encrypted if `password` is given."""

    @abc.abstractmethod
    def load_private_key(self, data: bytes, password: Optional[bytes]) -> PrivateKeyTypes:
        """Load a private key serialized with
        :py:func:`~django_pki.crypto.CryptoProvider.serialize_private_key`."""

    @abc.abstractmethod
    def export_pkcs12(
        self,
        name: str,
        private_key: PrivateKeyTypes,
        certificate: x509.Certificate,
        chain: Sequence[x509.Certificate],
        password: bytes,
    ) -> bytes:
        """Export a password-protected PKCS#12 bundle."""

    def verify_csr(self, csr: x509.CertificateSigningRequest) -> None:
        """Verify the self-signature of a certificate signing request."""
        if not csr.is_signature_valid:
            raise CryptoProviderError("Certificate signing request has an invalid signature.")


class CryptographyProvider(CryptoProvider):
    """Provider implemented with the :py:mod:`cryptography` library."""

    def get_algorithm(self, algorithm: Optional[hashes.HashAlgorithm]) -> hashes.HashAlgorithm:
        """Get the hash algorithm, defaulting to the ``PKI_SIGNATURE_HASH_ALGORITHM`` setting."""
        if algorithm is None:
            return model_settings.signature_hash_algorithm  # type: ignore[no-any-return]
        return algorithm

    def generate_private_key(
        self,
        key_type: KeyTypes,
        key_size: Optional[int] = None,
        elliptic_curve: Optional[ec.EllipticCurve] = None,
    ) -> PrivateKeyTypes:
        if key_type == "RSA":
            if key_size is None:
                key_size = model_settings.PKI_KEY_SIZE
            log.debug("Generating RSA private key with %s bits.", key_size)
            try:
                return rsa.generate_private_key(public_exponent=65537, key_size=key_size)
            except ValueError as ex:
                raise CryptoProviderError(f"Cannot generate RSA key: {ex}", step="keygen") from ex

        if key_type == "EC":
            if elliptic_curve is None:
                elliptic_curve = model_settings.elliptic_curve
            log.debug("Generating EC private key on %s.", elliptic_curve.name)
            try:
                return ec.generate_private_key(elliptic_curve)
            except UnsupportedAlgorithm as ex:
                raise CryptoProviderError(f"Cannot generate EC key: {ex}", step="keygen") from ex

        raise CryptoProviderError(f"{key_type}: Unsupported key type.", step="keygen")

    def build_csr(
        self,
        private_key: PrivateKeyTypes,
        subject: x509.Name,
        extensions: Sequence[x509.Extension[x509.ExtensionType]] = (),
        algorithm: Optional[hashes.HashAlgorithm] = None,
    ) -> x509.CertificateSigningRequest:
        builder = x509.CertificateSigningRequestBuilder().subject_name(subject)
        for extension in extensions:
            builder = builder.add_extension(extension.value, critical=extension.critical)

        try:
            return builder.sign(private_key, self.get_algorithm(algorithm))
        except (TypeError, ValueError) as ex:
            raise CryptoProviderError(f"Cannot sign certificate signing request: {ex}", step="csr") from ex

    def sign_certificate(
        self,
        private_key: PrivateKeyTypes,
        issuer: x509.Name,
        subject: x509.Name,
        public_key: PublicKeyTypes,
        serial: int,
        not_before: datetime,
        not_after: datetime,
        extensions: Sequence[x509.Extension[x509.ExtensionType]],
        algorithm: Optional[hashes.HashAlgorithm] = None,
    ) -> x509.Certificate:
        builder = x509.CertificateBuilder()
        builder = builder.not_valid_before(not_before)
        builder = builder.not_valid_after(not_after)
        builder = builder.serial_number(serial)
        builder = builder.public_key(public_key)
        builder = builder.issuer_name(issuer)
        builder = builder.subject_name(subject)
        for extension in extensions:
            builder = builder.add_extension(extension.value, critical=extension.critical)

        try:
            return builder.sign(private_key=private_key, algorithm=self.get_algorithm(algorithm))
        except (TypeError, ValueError) as ex:
            raise CryptoProviderError(f"Cannot sign certificate: {ex}", serial=serial, step="sign") from ex

    def sign_crl(
        self,
        private_key: PrivateKeyTypes,
        builder: x509.CertificateRevocationListBuilder,
        algorithm: Optional[hashes.HashAlgorithm] = None,
    ) -> x509.CertificateRevocationList:
        try:
            return builder.sign(private_key=private_key, algorithm=self.get_algorithm(algorithm))
        except (TypeError, ValueError) as ex:
            raise CryptoProviderError(f"Cannot sign CRL: {ex}", step="crl") from ex

    def sign_ocsp_response(
        self,
        private_key: PrivateKeyTypes,
        responder_certificate: x509.Certificate,
        builder: ocsp.OCSPResponseBuilder,
    ) -> ocsp.OCSPResponse:
        # Set the responder certificate as signer of the response
        builder = builder.responder_id(ocsp.OCSPResponderEncoding.HASH, responder_certificate)
        builder = builder.certificates([responder_certificate])
        try:
            return builder.sign(private_key, responder_certificate.signature_hash_algorithm)
        except (TypeError, ValueError) as ex:
            raise CryptoProviderError(f"Cannot sign OCSP response: {ex}", step="ocsp") from ex

    def serialize_private_key(self, private_key: PrivateKeyTypes, password: Optional[bytes]) -> bytes:
        if password is None:
            encryption: serialization.KeySerializationEncryption = serialization.NoEncryption()
        else:
            encryption = serialization.BestAvailableEncryption(password)

        return private_key.private_bytes(
            encoding=Encoding.PEM, format=PrivateFormat.PKCS8, encryption_algorithm=encryption
        )

    def load_private_key(self, data: bytes, password: Optional[bytes]) -> PrivateKeyTypes:
        try:
            key = serialization.load_pem_private_key(data, password)
        except (TypeError, ValueError) as ex:
            raise CryptoProviderError(f"Could not decrypt private key: {ex}", step="key") from ex
        except UnsupportedAlgorithm as ex:
            raise CryptoProviderError(f"Unsupported private key: {ex}", step="key") from ex

        if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
            raise CryptoProviderError(f"{type(key)}: Unsupported private key type.", step="key")
        return key

    def export_pkcs12(
        self,
        name: str,
        private_key: PrivateKeyTypes,
        certificate: x509.Certificate,
        chain: Sequence[x509.Certificate],
        password: bytes,
    ) -> bytes:
        try:
            return pkcs12.serialize_key_and_certificates(
                name=name.encode("utf-8"),
                key=private_key,
                cert=certificate,
                cas=list(chain),
                encryption_algorithm=serialization.BestAvailableEncryption(password),
            )
        except (TypeError, ValueError) as ex:
            raise CryptoProviderError(f"Cannot export PKCS#12 bundle: {ex}", step="export") from ex


def verify_signature(certificate: x509.Certificate, issuer: x509.Certificate) -> bool:
    """Return ``True`` if `certificate` was signed by `issuer`."""
    try:
        certificate.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def get_provider() -> CryptoProvider:
    """Get an instance of the provider configured with ``PKI_CRYPTO_PROVIDER``."""
    path = model_settings.PKI_CRYPTO_PROVIDER
    try:
        provider_cls = import_string(path)
    except ImportError as ex:
        raise ImproperlyConfigured(f"Could not find crypto provider {path!r}: {ex}") from ex

    if not isinstance(provider_cls, type) or not issubclass(provider_cls, CryptoProvider):
        raise ImproperlyConfigured(f"{path}: Class does not refer to a crypto provider.")
    return provider_cls()

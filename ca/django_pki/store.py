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

"""Persisted state of a single authority.

Every authority lives in its own directory below ``PKI_DIR``::

    root/
        authority.json      # AuthorityConfig
        certs/              # ca.cert.pem, ca-chain.cert.pem and issued certificates
        crl/                # ca.crl.pem
        csr/
        newcerts/           # <SERIAL>.pem for every certificate in the index
        private/            # private keys, only accessible by the owner
        index.txt
        serial
        crlnumber
"""

import contextlib
import logging
import shutil
from collections.abc import Iterator, Mapping
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

from django_pki import constants
from django_pki.conf import model_settings
from django_pki.constants import AuthorityKind, Policy, ReasonFlags
from django_pki.crypto import CryptoProvider, PrivateKeyTypes, get_provider
from django_pki.exceptions import (
    AlreadyExistsError,
    ChainError,
    NotFoundError,
    PKIError,
    StorageError,
)
from django_pki.index import CertificateRecord, IndexDatabase
from django_pki.profiles import INTERMEDIATE_CA, ROOT_CA
from django_pki.secrets import SecretSource, SettingsSecretSource
from django_pki.serials import SequenceFile, SerialAllocator
from django_pki.utils import (
    atomic_write,
    build_subject,
    file_lock,
    format_name_rfc4514,
    int_to_hex,
    now as get_now,
    write_protected,
)

log = logging.getLogger(__name__)


class AuthorityConfig(BaseModel):
    """Configuration of an authority, persisted in ``authority.json``."""

    model_config = ConfigDict(frozen=True)

    kind: AuthorityKind
    common_name: str
    subject: dict[str, str] = {}
    policy: Policy = Policy.loose
    crl_url: Optional[str] = None
    ocsp_url: Optional[str] = None

    @classmethod
    def from_settings(
        cls, kind: AuthorityKind, subject: Optional[Mapping[str, str]] = None
    ) -> "AuthorityConfig":
        """Create the configuration from current settings."""
        authority = model_settings.PKI_AUTHORITIES[kind]
        if subject is None:
            subject = model_settings.PKI_DEFAULT_SUBJECT

        # The root only signs the intermediate, which must match its subject
        policy = Policy.strict if kind == AuthorityKind.root else Policy.loose
        return cls(
            kind=kind,
            common_name=authority.common_name,
            subject=dict(subject),
            policy=policy,
            crl_url=authority.crl_url,
            ocsp_url=authority.ocsp_url,
        )

    @property
    def distinguished_name(self) -> x509.Name:
        """The subject of the authority certificate."""
        return build_subject(self.subject, common_name=self.common_name)


class AuthorityStore:
    """The directory holding the state of one authority.

    Parameters
    ----------
    kind : :py:class:`~django_pki.constants.AuthorityKind`
        Which authority this store holds.
    path : :py:class:`~pathlib.Path`, optional
        The directory of the authority. The default is ``PKI_DIR / kind.value``.
    secrets : :py:class:`~django_pki.secrets.SecretSource`, optional
        Source for the passwords of private keys. The default reads the ``PKI_PASSWORDS`` setting.
    provider : :py:class:`~django_pki.crypto.CryptoProvider`, optional
        The default is the provider configured in ``PKI_CRYPTO_PROVIDER``.
    """

    def __init__(
        self,
        kind: AuthorityKind,
        path: Optional[Path] = None,
        secrets: Optional[SecretSource] = None,
        provider: Optional[CryptoProvider] = None,
    ) -> None:
        if path is None:
            path = Path(model_settings.PKI_DIR) / kind.value
        if secrets is None:
            secrets = SettingsSecretSource()
        if provider is None:
            provider = get_provider()

        self.kind = kind
        self.path = path
        self.secrets = secrets
        self.provider = provider

        self.index = IndexDatabase(path / constants.INDEX_FILE, authority=self.name)
        self.serials = SerialAllocator(
            path / constants.SERIAL_FILE, path / constants.SKIPPED_SERIALS_FILE, authority=self.name
        )
        self.crl_numbers = SequenceFile(path / constants.CRL_NUMBER_FILE, authority=self.name)
        self._config: Optional[AuthorityConfig] = None

    def __repr__(self) -> str:
        return f"<AuthorityStore: {self.name} ({self.path})>"

    @property
    def name(self) -> str:
        """Name of the authority, used in log and error messages."""
        return self.kind.value

    # Paths

    def key_path(self, prefix: str = constants.CA_PREFIX) -> Path:
        """Path of a private key."""
        return self.path / constants.PRIVATE_DIR / f"{prefix}.key.pem"

    def cert_path(self, prefix: str = constants.CA_PREFIX) -> Path:
        """Path of a certificate."""
        return self.path / constants.CERTS_DIR / f"{prefix}.cert.pem"

    def csr_path(self, prefix: str = constants.CA_PREFIX) -> Path:
        """Path of a certificate signing request."""
        return self.path / constants.CSR_DIR / f"{prefix}.csr.pem"

    def pkcs12_path(self, prefix: str) -> Path:
        """Path of an exported PKCS#12 bundle."""
        return self.path / constants.PRIVATE_DIR / f"{prefix}.p12"

    @property
    def chain_path(self) -> Path:
        """Path of the chain file (the authority certificate followed by its parents)."""
        return self.cert_path(constants.CHAIN_PREFIX)

    @property
    def crl_path(self) -> Path:
        """Path of the current certificate revocation list."""
        return self.path / constants.CRL_DIR / constants.CRL_FILE

    @property
    def config_path(self) -> Path:
        """Path of the persisted configuration."""
        return self.path / constants.CONFIG_FILE

    def newcert_filename(self, serial: int) -> str:
        """File name of a certificate with the given serial as stored in the index."""
        return f"{constants.NEWCERTS_DIR}/{int_to_hex(serial)}.pem"

    # State

    def exists(self) -> bool:
        """Return ``True`` if the authority was initialized."""
        return self.config_path.exists()

    def is_provisioned(self) -> bool:
        """Return ``True`` if the authority has a certificate."""
        return self.cert_path().exists()

    @property
    def config(self) -> AuthorityConfig:
        """The persisted configuration of this authority."""
        if self._config is None:
            try:
                self._config = AuthorityConfig.model_validate_json(self.config_path.read_text("utf-8"))
            except FileNotFoundError as ex:
                raise NotFoundError(
                    f"{self.name}: Authority was not initialized.", authority=self.name, path=self.path
                ) from ex
            except (OSError, ValidationError) as ex:
                raise StorageError(
                    f"Cannot read configuration: {ex}", authority=self.name, path=self.config_path
                ) from ex
        return self._config

    def save_config(self, config: AuthorityConfig) -> None:
        """Persist the given configuration."""
        try:
            atomic_write(self.config_path, config.model_dump_json(indent=4).encode("utf-8"))
        except OSError as ex:
            raise StorageError(
                f"Cannot write configuration: {ex}", authority=self.name, path=self.config_path
            ) from ex
        self._config = config

    def update_config(self) -> AuthorityConfig:
        """Update the persisted configuration from current settings."""
        old = self.config
        config = AuthorityConfig.from_settings(self.kind)
        self.save_config(config)
        if old != config:
            log.info("%s: Updated configuration.", self.name)
        return config

    @contextlib.contextmanager
    def lock(self) -> Iterator[None]:
        """Hold an exclusive lock on this authority."""
        with file_lock(self.path / constants.LOCK_FILE):
            yield

    def initialize(self, subject: Optional[Mapping[str, str]] = None, overwrite: bool = False) -> None:
        """Create an empty authority.

        Any existing state is removed first if `overwrite` is ``True``, otherwise
        :py:class:`~django_pki.exceptions.AlreadyExistsError` is raised.
        """
        if self.path.exists() and any(self.path.iterdir()):
            if overwrite is False:
                raise AlreadyExistsError(
                    f"{self.path}: Authority already exists.", authority=self.name, path=self.path
                )
            log.warning("%s: Removing existing authority in %s.", self.name, self.path)
            self.remove()

        try:
            self.path.mkdir(parents=True, exist_ok=True)
            for directory in constants.AUTHORITY_DIRS:
                (self.path / directory).mkdir()
            (self.path / constants.PRIVATE_DIR).chmod(constants.PRIVATE_DIR_MODE)

            self.index.initialize()
            self.serials.initialize(model_settings.PKI_SERIAL_START)
            self.crl_numbers.initialize(model_settings.PKI_SERIAL_START)
            self.save_config(AuthorityConfig.from_settings(self.kind, subject))
        except OSError as ex:
            self.remove()
            raise StorageError(f"Cannot create authority: {ex}", authority=self.name, path=self.path) from ex
        except PKIError:
            self.remove()
            raise
        log.info("%s: Initialized authority in %s.", self.name, self.path)

    def remove(self) -> None:
        """Remove all state of this authority."""
        self._config = None
        if self.path.exists():
            shutil.rmtree(self.path)

    # Keys and certificates

    def write_private_key(self, private_key: PrivateKeyTypes, prefix: str, password: Optional[bytes]) -> Path:
        """Write a private key readable only by the owner."""
        path = self.key_path(prefix)
        data = self.provider.serialize_private_key(private_key, password)
        try:
            write_protected(path, data, constants.PRIVATE_KEY_MODE)
        except FileExistsError as ex:
            raise AlreadyExistsError(f"{path}: Private key already exists.", authority=self.name) from ex
        except OSError as ex:
            raise StorageError(f"Cannot write private key: {ex}", authority=self.name, path=path) from ex
        return path

    def load_private_key(
        self, prefix: str = constants.CA_PREFIX, purpose: Optional[str] = None
    ) -> PrivateKeyTypes:
        """Load a private key, asking for the password only if the key is encrypted."""
        path = self.key_path(prefix)
        try:
            data = path.read_bytes()
        except FileNotFoundError as ex:
            raise NotFoundError(f"{path}: Private key not found.", authority=self.name, path=path) from ex
        except OSError as ex:
            raise StorageError(f"Cannot read private key: {ex}", authority=self.name, path=path) from ex

        password = None
        if b"ENCRYPTED" in data:
            if purpose is None:
                purpose = self.name if prefix == constants.CA_PREFIX else prefix
            password = self.secrets.get(purpose)
        return self.provider.load_private_key(data, password)

    def write_certificate(self, certificate: x509.Certificate, path: Path) -> None:
        """Write a certificate that becomes read-only after creation."""
        self.write_certificates([certificate], path)

    def write_certificates(self, certificates: list[x509.Certificate], path: Path) -> None:
        """Write one or more certificates to a read-only file."""
        data = b"".join(cert.public_bytes(Encoding.PEM) for cert in certificates)
        try:
            write_protected(path, data, constants.CERTIFICATE_MODE)
        except FileExistsError as ex:
            raise AlreadyExistsError(f"{path}: Certificate already exists.", authority=self.name) from ex
        except OSError as ex:
            raise StorageError(f"Cannot write certificate: {ex}", authority=self.name, path=path) from ex

    @property
    def certificate(self) -> x509.Certificate:
        """The certificate of this authority."""
        return self.load_certificate(self.cert_path())

    @property
    def subject(self) -> x509.Name:
        """The subject of this authority."""
        return self.certificate.subject

    def chain(self) -> list[x509.Certificate]:
        """The certificate of this authority followed by its parents."""
        if self.chain_path.exists():
            return self.load_certificates(self.chain_path)
        return [self.certificate]

    def remaining_validity(self, now: Optional[datetime] = None) -> timedelta:
        """Time until the certificate of this authority expires."""
        if now is None:
            now = get_now()
        return self.certificate.not_valid_after_utc - now

    def load_certificate(self, path: Path) -> x509.Certificate:
        """Load a single PEM encoded certificate."""
        certificates = self.load_certificates(path)
        return certificates[0]

    def load_certificates(self, path: Path) -> list[x509.Certificate]:
        """Load all PEM encoded certificates from a file."""
        try:
            data = path.read_bytes()
        except FileNotFoundError as ex:
            raise NotFoundError(f"{path}: Certificate not found.", authority=self.name, path=path) from ex
        except OSError as ex:
            raise StorageError(f"Cannot read certificate: {ex}", authority=self.name, path=path) from ex

        try:
            certificates = x509.load_pem_x509_certificates(data)
        except ValueError as ex:
            raise StorageError(f"Cannot parse certificate: {ex}", authority=self.name, path=path) from ex
        return certificates

    def find_certificate(self, value: Union[str, Path]) -> x509.Certificate:
        """Find a certificate by path or prefix.

        If `value` is neither an existing file nor the prefix of a certificate in ``certs/``, the most recent
        certificate in the index with `value` as common name is returned.
        """
        path = Path(value)
        if path.is_file():
            return self.load_certificate(path)

        path = self.cert_path(str(value))
        if path.exists():
            return self.load_certificate(path)

        records = self.index.find_by_common_name(str(value))
        if not records:
            raise NotFoundError(f"{value}: Certificate not found.", authority=self.name)
        return self.load_certificate(self.path / records[-1].filename)

    def resolve_certificate(self, value: Union[str, Path]) -> tuple[CertificateRecord, x509.Certificate]:
        """Get the index record and certificate from a path or prefix."""
        certificate = self.find_certificate(value)
        message = f"{value}: Certificate was not issued by the {self.name} authority."
        if certificate.issuer != self.subject:
            raise NotFoundError(message, authority=self.name, serial=certificate.serial_number)
        try:
            record = self.index.get(certificate.serial_number)
        except NotFoundError as ex:
            raise NotFoundError(message, authority=self.name, serial=certificate.serial_number) from ex
        return record, certificate

    def export_pkcs12(self, prefix: str, password: bytes) -> Path:
        """Export a private key, its certificate and the chain of this authority as PKCS#12 bundle."""
        private_key = self.load_private_key(prefix)
        certificate = self.load_certificate(self.cert_path(prefix))
        path = self.pkcs12_path(prefix)

        data = self.provider.export_pkcs12(prefix, private_key, certificate, self.chain(), password)
        try:
            write_protected(path, data, constants.PRIVATE_KEY_MODE)
        except FileExistsError as ex:
            raise AlreadyExistsError(f"{path}: File already exists.", authority=self.name) from ex
        except OSError as ex:
            raise StorageError(f"Cannot write PKCS#12 bundle: {ex}", authority=self.name, path=path) from ex

        log.info("%s: Exported %s to %s.", self.name, prefix, path)
        return path

    # Certificate revocation lists

    def load_crl(self) -> x509.CertificateRevocationList:
        """Load the current certificate revocation list."""
        try:
            return x509.load_pem_x509_crl(self.crl_path.read_bytes())
        except FileNotFoundError as ex:
            raise NotFoundError(
                f"{self.crl_path}: CRL not found.", authority=self.name, path=self.crl_path
            ) from ex
        except (OSError, ValueError) as ex:
            raise StorageError(f"Cannot read CRL: {ex}", authority=self.name, path=self.crl_path) from ex

    def write_crl(self, crl: x509.CertificateRevocationList) -> None:
        """Replace the current certificate revocation list."""
        try:
            atomic_write(self.crl_path, crl.public_bytes(Encoding.PEM))
        except OSError as ex:
            raise StorageError(f"Cannot write CRL: {ex}", authority=self.name, path=self.crl_path) from ex

    # Provisioning

    def provision_root(self) -> x509.Certificate:
        """Create the private key and the self-signed certificate of the root authority."""
        if self.kind != AuthorityKind.root:
            raise ValueError(f"{self.name}: Only the root authority is self-signed.")
        if self.is_provisioned():
            raise AlreadyExistsError(
                f"{self.name}: Authority already has a certificate.", authority=self.name
            )

        config = self.config
        password = self.secrets.get_new(self.name)
        if password is None:
            log.warning("%s: Private key is stored unencrypted.", self.name)

        private_key = self.provider.generate_private_key(model_settings.PKI_KEY_TYPE)
        public_key = private_key.public_key()
        subject = config.distinguished_name
        not_before = get_now()

        with self.lock():
            extensions = ROOT_CA.get_extensions(subject, public_key, public_key)
            certificate = self.provider.sign_certificate(
                private_key,
                issuer=subject,
                subject=subject,
                public_key=public_key,
                serial=x509.random_serial_number(),
                not_before=not_before,
                not_after=not_before + ROOT_CA.validity,
                extensions=extensions,
            )
            self.write_private_key(private_key, constants.CA_PREFIX, password)
            self.write_certificate(certificate, self.cert_path())

        log.info("%s: Created self-signed certificate for %s.", self.name, format_name_rfc4514(subject))
        return certificate

    def provision_intermediate(self, root_store: "AuthorityStore") -> x509.Certificate:
        """Create the private key of the intermediate authority and have it signed by the root."""
        # pylint: disable-next=import-outside-toplevel  # issuer imports this module
        from django_pki.issuer import CertificateIssuer
        from django_pki.verification import ChainVerifier  # pylint: disable=import-outside-toplevel

        if self.kind != AuthorityKind.intermediate:
            raise ValueError(f"{self.name}: Only the intermediate authority is signed by the root.")
        if self.is_provisioned():
            raise AlreadyExistsError(
                f"{self.name}: Authority already has a certificate.", authority=self.name
            )

        root_certificate = root_store.certificate
        password = self.secrets.get_new(self.name)
        if password is None:
            log.warning("%s: Private key is stored unencrypted.", self.name)

        private_key = self.provider.generate_private_key(model_settings.PKI_KEY_TYPE)
        csr = self.provider.build_csr(private_key, self.config.distinguished_name)
        try:
            atomic_write(self.csr_path(), csr.public_bytes(Encoding.PEM))
        except OSError as ex:
            raise StorageError(f"Cannot write CSR: {ex}", authority=self.name, path=self.csr_path()) from ex

        issuer = CertificateIssuer(root_store)
        root_key = root_store.load_private_key()
        with root_store.lock(), self.lock():
            certificate = issuer.sign_request(INTERMEDIATE_CA, csr, locked=True, issuer_key=root_key)

            try:
                ChainVerifier().verify(certificate, root_certificate)
            except ChainError:
                log.error("%s: Signed certificate does not verify against the root.", self.name)
                root_store.index.mark_revoked(certificate.serial_number, ReasonFlags.cessation_of_operation)
                raise

            self.write_private_key(private_key, constants.CA_PREFIX, password)
            self.write_certificate(certificate, self.cert_path())
            self.write_certificates([certificate, root_certificate], self.chain_path)

        log.info(
            "%s: Created certificate for %s signed by %s.",
            self.name,
            format_name_rfc4514(certificate.subject),
            root_store.name,
        )
        return certificate


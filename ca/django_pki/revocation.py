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

"""Revocation of certificates and generation of certificate revocation lists."""

import logging
import typing
import warnings
from datetime import datetime
from typing import NamedTuple, Optional

from cryptography import x509

from django_pki.conf import model_settings
from django_pki.constants import CRL_REASONS, ReasonFlags
from django_pki.exceptions import CrlNotConfigured, CrlStaleWarning, PKIError
from django_pki.index import CertificateRecord
from django_pki.utils import int_to_hex, now as get_now

if typing.TYPE_CHECKING:
    from django_pki.store import AuthorityStore

log = logging.getLogger(__name__)


class RevocationResult(NamedTuple):
    """Result of revoking a certificate.

    `crl` is ``None`` if the authority has no CRL configured or if regenerating it failed. In the latter case,
    `warning` holds the :py:class:`~django_pki.exceptions.CrlStaleWarning` that was issued.
    """

    record: CertificateRecord
    crl: Optional[x509.CertificateRevocationList] = None
    warning: Optional[CrlStaleWarning] = None


def get_revoked_certificate(record: CertificateRecord) -> x509.RevokedCertificate:
    """Get the CRL entry for a revoked record."""
    if record.revoked_at is None:
        raise ValueError(f"{record.hex_serial}: Certificate is not revoked.")

    builder = x509.RevokedCertificateBuilder()
    builder = builder.serial_number(record.serial)
    builder = builder.revocation_date(record.revoked_at)

    if record.reason is not None and record.reason != ReasonFlags.unspecified:
        builder = builder.add_extension(x509.CRLReason(CRL_REASONS[record.reason]), critical=False)
    return builder.build()


class RevocationEngine:
    """Revokes certificates issued by the authority in `store` and maintains its CRL."""

    def __init__(self, store: "AuthorityStore") -> None:
        self.store = store

    def __repr__(self) -> str:
        return f"<RevocationEngine: {self.store.name}>"

    def revoke(
        self, serial: int, reason: ReasonFlags = ReasonFlags.unspecified, at: Optional[datetime] = None
    ) -> RevocationResult:
        """Revoke the certificate with the given serial and regenerate the CRL.

        The revocation is kept even if the CRL cannot be regenerated. In this case, a
        :py:class:`~django_pki.exceptions.CrlStaleWarning` is issued and returned in the result.
        """
        store = self.store
        with store.lock():
            record = store.index.mark_revoked(serial, reason, at=at)

        try:
            crl = self.generate_crl()
        except CrlNotConfigured:
            log.debug("%s: No CRL configured, not regenerating it.", store.name)
            return RevocationResult(record=record)
        except (PKIError, OSError) as ex:
            warning = CrlStaleWarning(
                f"{store.name}: {int_to_hex(serial)} was revoked, but the CRL could not be regenerated: {ex}"
            )
            log.warning(str(warning))
            warnings.warn(warning, stacklevel=2)
            return RevocationResult(record=record, warning=warning)

        return RevocationResult(record=record, crl=crl)

    def generate_crl(self, next_update: Optional[datetime] = None) -> x509.CertificateRevocationList:
        """Generate and store a new certificate revocation list.

        Parameters
        ----------
        next_update : datetime, optional
            When the CRL will be updated again, the default is the current time plus ``PKI_CRL_VALIDITY``.
        """
        store = self.store
        if store.config.crl_url is None:
            raise CrlNotConfigured(f"{store.name}: Authority has no CRL configured.", authority=store.name)

        private_key = store.load_private_key()
        certificate = store.certificate

        last_update = get_now()
        if next_update is None:
            next_update = last_update + model_settings.PKI_CRL_VALIDITY
        else:
            next_update = next_update.replace(microsecond=0)

        builder = x509.CertificateRevocationListBuilder()
        builder = builder.issuer_name(certificate.subject)
        builder = builder.last_update(last_update)
        builder = builder.next_update(next_update)
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(private_key.public_key()), critical=False
        )

        with store.lock():
            for record in store.index.revoked():
                builder = builder.add_revoked_certificate(get_revoked_certificate(record))

            number = store.crl_numbers.next()
            builder = builder.add_extension(x509.CRLNumber(crl_number=number), critical=False)
            crl = store.provider.sign_crl(private_key, builder)
            store.write_crl(crl)

        log.info("%s: Generated CRL number %s with %d entries.", store.name, int_to_hex(number), len(crl))
        return crl

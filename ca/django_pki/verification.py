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

"""Verification of certificate chains.

Checks are done in a fixed order and the first failing check raises an exception:

#. Every signature in the chain is valid and the chain ends at the trust anchor.
#. Every certificate is valid at the given time.
#. Every issuer is an authority and path length constraints are honored.
#. The certificate is not on the certificate revocation list (if one is given).
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import NamedTuple, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from django_pki.constants import ReasonFlags
from django_pki.crypto import verify_signature
from django_pki.exceptions import ChainError, RevokedError
from django_pki.utils import format_name_rfc4514, int_to_hex, now as get_now

log = logging.getLogger(__name__)


class ValidChain(NamedTuple):
    """A verified chain, starting with the verified certificate and ending with the trust anchor."""

    certificates: tuple[x509.Certificate, ...]

    @property
    def leaf(self) -> x509.Certificate:
        """The verified certificate."""
        return self.certificates[0]

    @property
    def trust_anchor(self) -> x509.Certificate:
        """The trust anchor the chain ends with."""
        return self.certificates[-1]


def _name(certificate: x509.Certificate) -> str:
    return format_name_rfc4514(certificate.subject)


def _is_same(first: x509.Certificate, second: x509.Certificate) -> bool:
    return first.fingerprint(hashes.SHA256()) == second.fingerprint(hashes.SHA256())


def get_revocation_reason(entry: x509.RevokedCertificate) -> ReasonFlags:
    """Get the reason from a CRL entry, ``unspecified`` if the entry has no reason."""
    try:
        reason = entry.extensions.get_extension_for_class(x509.CRLReason).value.reason
    except x509.ExtensionNotFound:
        return ReasonFlags.unspecified
    return ReasonFlags[reason.name]


class ChainVerifier:
    """Verifies a certificate against a single trust anchor.

    Instances hold no state and may be shared freely.
    """

    def verify(
        self,
        certificate: x509.Certificate,
        trust_anchor: x509.Certificate,
        intermediates: Sequence[x509.Certificate] = (),
        crl: Optional[x509.CertificateRevocationList] = None,
        now: Optional[datetime] = None,
    ) -> ValidChain:
        """Verify `certificate`, raising :py:class:`~django_pki.exceptions.ChainError` if it is not valid."""
        if now is None:
            now = get_now()

        chain = self.build_chain(certificate, trust_anchor, intermediates)
        self.check_validity(chain, now)
        self.check_basic_constraints(chain)
        if crl is not None:
            self.check_crl(chain, crl, now)
        return ValidChain(certificates=chain)

    def build_chain(
        self,
        certificate: x509.Certificate,
        trust_anchor: x509.Certificate,
        intermediates: Sequence[x509.Certificate],
    ) -> tuple[x509.Certificate, ...]:
        """Build the chain from `certificate` to `trust_anchor`, verifying every signature."""
        chain = [certificate]
        current = certificate
        candidates = list(intermediates)

        while not _is_same(current, trust_anchor):
            if len(chain) > len(intermediates) + 1:
                raise ChainError(f"{_name(certificate)}: Certificate chain contains a loop.")

            if current.issuer == trust_anchor.subject and verify_signature(current, trust_anchor):
                chain.append(trust_anchor)
                break

            for candidate in candidates:
                if current.issuer == candidate.subject and verify_signature(current, candidate):
                    candidates.remove(candidate)
                    chain.append(candidate)
                    current = candidate
                    break
            else:
                raise ChainError(
                    f"{_name(current)}: Could not find a valid signature from "
                    f"{format_name_rfc4514(current.issuer)}."
                )
        return tuple(chain)

    def check_validity(self, chain: Sequence[x509.Certificate], now: datetime) -> None:
        """Check that all certificates are valid at the given time."""
        for cert in chain:
            if cert.not_valid_before_utc > now:
                raise ChainError(f"{_name(cert)}: Certificate is not yet valid.")
            if cert.not_valid_after_utc < now:
                raise ChainError(f"{_name(cert)}: Certificate has expired.")

    def check_basic_constraints(self, chain: Sequence[x509.Certificate]) -> None:
        """Check that all issuers are authorities and that path length constraints hold."""
        # Issuers are all certificates but the first one
        for position, cert in enumerate(chain[1:], 1):
            try:
                basic_constraints = cert.extensions.get_extension_for_class(x509.BasicConstraints).value
            except x509.ExtensionNotFound as ex:
                raise ChainError(f"{_name(cert)}: Issuer has no BasicConstraints extension.") from ex

            if basic_constraints.ca is False:
                raise ChainError(f"{_name(cert)}: Issuer is not a certificate authority.")

            # number of intermediate authorities below this certificate (the leaf does not count)
            below = position - 1
            if basic_constraints.path_length is not None and below > basic_constraints.path_length:
                raise ChainError(
                    f"{_name(cert)}: Path length constraint ({basic_constraints.path_length}) exceeded."
                )

    def check_crl(
        self, chain: Sequence[x509.Certificate], crl: x509.CertificateRevocationList, now: datetime
    ) -> None:
        """Check that the first certificate in the chain is not revoked."""
        certificate = chain[0]
        issuer = chain[1] if len(chain) > 1 else chain[0]

        public_key = issuer.public_key()
        if crl.issuer != issuer.subject or not crl.is_signature_valid(public_key):  # type: ignore[arg-type]
            raise ChainError(f"{_name(issuer)}: CRL was not signed by the issuer of the certificate.")

        next_update = crl.next_update_utc
        if next_update is not None and next_update < now:
            log.warning("%s: CRL is outdated since %s.", _name(issuer), next_update.isoformat())

        entry = crl.get_revoked_certificate_by_serial_number(certificate.serial_number)
        if entry is not None:
            reason = get_revocation_reason(entry)
            raise RevokedError(
                f"{int_to_hex(certificate.serial_number)}: Certificate was revoked "
                f"on {entry.revocation_date_utc.isoformat()} ({reason.value}).",
                reason=reason,
                revoked_at=entry.revocation_date_utc,
                serial=certificate.serial_number,
            )

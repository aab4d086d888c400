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

"""Constants used throughout django-pki.

Constants are either immutable types or wrapped in :py:class:`~types.MappingProxyType`, so that they cannot be
modified at runtime.
"""

import enum
from types import MappingProxyType

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


class AuthorityKind(enum.Enum):
    """The two tiers of the hierarchy.

    The value is also the name of the directory holding the authority below ``PKI_DIR``.
    """

    root = "root"
    intermediate = "intermediate"


class Policy(enum.Enum):
    """Subject matching policy applied when an authority signs a request."""

    #: All subject fields except the common name must match the issuer.
    strict = "strict"

    #: Subject fields are optional and may differ from the issuer.
    loose = "loose"


class Status(enum.Enum):
    """Status of an issued certificate. The value is the flag used in the index file."""

    valid = "V"
    revoked = "R"
    expired = "E"


class OCSPStatus(enum.Enum):
    """Status reported by the OCSP responder."""

    good = "good"
    revoked = "revoked"
    unknown = "unknown"


class ReasonFlags(enum.Enum):
    """An enumeration for CRL reasons.

    This enumeration is a copy of ``cryptography.x509.ReasonFlags``, values are the names used in the index
    file and on the command line.
    """

    unspecified = "unspecified"
    key_compromise = "keyCompromise"
    ca_compromise = "cACompromise"
    affiliation_changed = "affiliationChanged"
    superseded = "superseded"
    cessation_of_operation = "cessationOfOperation"
    certificate_hold = "certificateHold"
    privilege_withdrawn = "privilegeWithdrawn"
    aa_compromise = "aACompromise"
    remove_from_crl = "removeFromCRL"


#: Mapping of RFC 5280, section 5.3.1 reason codes too cryptography reason codes
REASON_CODES = MappingProxyType(
    {
        0: ReasonFlags.unspecified,
        1: ReasonFlags.key_compromise,
        2: ReasonFlags.ca_compromise,
        3: ReasonFlags.affiliation_changed,
        4: ReasonFlags.superseded,
        5: ReasonFlags.cessation_of_operation,
        6: ReasonFlags.certificate_hold,
        8: ReasonFlags.remove_from_crl,
        9: ReasonFlags.privilege_withdrawn,
        10: ReasonFlags.aa_compromise,
    }
)

#: Date format used in the index file for dates before 2050 (``UTCTime``).
INDEX_DATE_FORMAT = "%y%m%d%H%M%SZ"

#: Date format used in the index file for dates from 2050 on (``GeneralizedTime``).
INDEX_GENERALIZED_DATE_FORMAT = "%Y%m%d%H%M%SZ"

# Names of files and directories in an authority directory
CERTS_DIR = "certs"
CRL_DIR = "crl"
CSR_DIR = "csr"
NEWCERTS_DIR = "newcerts"
PRIVATE_DIR = "private"
AUTHORITY_DIRS = (CERTS_DIR, CRL_DIR, CSR_DIR, NEWCERTS_DIR, PRIVATE_DIR)

INDEX_FILE = "index.txt"
SERIAL_FILE = "serial"
CRL_NUMBER_FILE = "crlnumber"
SKIPPED_SERIALS_FILE = "serial.skipped"
CONFIG_FILE = "authority.json"
LOCK_FILE = ".lock"

CA_PREFIX = "ca"
CHAIN_PREFIX = "ca-chain"
OCSP_PREFIX = "ocsp"
CRL_FILE = "ca.crl.pem"

# File modes
PRIVATE_DIR_MODE = 0o700
PRIVATE_KEY_MODE = 0o400
CERTIFICATE_MODE = 0o444

ELLIPTIC_CURVE_TYPES: MappingProxyType[str, type[ec.EllipticCurve]] = MappingProxyType(
    {
        "secp256r1": ec.SECP256R1,
        "secp384r1": ec.SECP384R1,
        "secp521r1": ec.SECP521R1,
    }
)

HASH_ALGORITHM_TYPES: MappingProxyType[str, type[hashes.HashAlgorithm]] = MappingProxyType(
    {
        "SHA-256": hashes.SHA256,
        "SHA-384": hashes.SHA384,
        "SHA-512": hashes.SHA512,
    }
)

#: Short attribute names as used in OpenSSL-style ("/C=AT/CN=...") subjects.
NAME_OID_SHORT_NAMES = MappingProxyType(
    {
        NameOID.COUNTRY_NAME: "C",
        NameOID.STATE_OR_PROVINCE_NAME: "ST",
        NameOID.LOCALITY_NAME: "L",
        NameOID.ORGANIZATION_NAME: "O",
        NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
        NameOID.COMMON_NAME: "CN",
        NameOID.EMAIL_ADDRESS: "emailAddress",
    }
)

NAME_OID_TYPES = MappingProxyType({v: k for k, v in NAME_OID_SHORT_NAMES.items()})

#: Attribute name overrides when formatting and parsing RFC 4514 strings.
RFC4514_NAME_OVERRIDES = MappingProxyType({NameOID.EMAIL_ADDRESS: "emailAddress"})

#: Order of subject attributes when building a subject from separate fields.
SUBJECT_FIELDS = ("C", "ST", "L", "O", "OU", "CN", "emailAddress")

CRL_REASONS = MappingProxyType({flag: x509.ReasonFlags[flag.name] for flag in ReasonFlags})

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

"""Test certificate profiles."""

from datetime import timedelta

import pytest
from pytest_django.fixtures import SettingsWrapper

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, ExtensionOID

from django_pki.profiles import (
    END_ENTITY_PROFILES,
    INTERMEDIATE_CA,
    OCSP,
    ROOT_CA,
    SERVER,
    USER,
    Profile,
    get_profile,
)
from django_pki.utils import build_subject

CRL_URL = "http://example.com/crl/"
OCSP_URL = "http://example.com/ocsp/"


@pytest.fixture(scope="module")
def public_key() -> ec.EllipticCurvePublicKey:
    """Public key used in certificates."""
    return ec.generate_private_key(ec.SECP256R1()).public_key()


def get_extensions(
    profile: Profile, public_key: ec.EllipticCurvePublicKey, common_name: str = "example.com"
) -> dict[x509.ObjectIdentifier, x509.Extension[x509.ExtensionType]]:
    """Get extensions by OID."""
    subject = build_subject({"C": "AT"}, common_name=common_name)
    extensions = profile.get_extensions(
        subject, public_key, public_key, crl_url=CRL_URL, ocsp_url=OCSP_URL
    )
    return {ext.oid: ext for ext in extensions}


def test_get_profile() -> None:
    """Test getting profiles by name."""
    assert get_profile("server") is SERVER
    assert get_profile("ocsp") is OCSP
    with pytest.raises(ValueError, match=r"^foo: Unknown profile\.$"):
        get_profile("foo")


def test_end_entity_profiles() -> None:
    """Test that only server and user certificates can be issued directly."""
    assert dict(END_ENTITY_PROFILES) == {"server": SERVER, "user": USER}


def test_unknown_key_usage() -> None:
    """Test creating a profile with an unknown key usage."""
    with pytest.raises(ValueError, match=r"^foo: Unknown key usage\.$"):
        Profile("test", key_usage=("digital_signature", "foo"))


def test_validity(settings: SettingsWrapper) -> None:
    """Test that validities are read from settings."""
    settings.PKI_DEFAULT_VALIDITY = 10
    settings.PKI_ROOT_VALIDITY = 20
    assert SERVER.validity == timedelta(days=10)
    assert USER.validity == timedelta(days=10)
    assert ROOT_CA.validity == timedelta(days=20)


def test_str() -> None:
    """Test str() and repr()."""
    assert str(SERVER) == "server"
    assert repr(SERVER) == "<Profile: server>"


@pytest.mark.parametrize(
    ("common_name", "names", "expected"),
    (
        ("example.com", [], [x509.DNSName("example.com")]),
        (
            "example.com",
            [x509.DNSName("www.example.com")],
            [x509.DNSName("example.com"), x509.DNSName("www.example.com")],
        ),
        ("example.com", [x509.DNSName("example.com")], [x509.DNSName("example.com")]),
        ("Example Server", [], []),
        (
            "example.com",
            [x509.DNSName("a.example.com"), x509.DNSName("a.example.com")],
            [x509.DNSName("example.com"), x509.DNSName("a.example.com")],
        ),
    ),
)
def test_server_subject_alternative_names(
    common_name: str, names: list[x509.GeneralName], expected: list[x509.GeneralName]
) -> None:
    """Test that the common name is added to the subject alternative names for server certificates."""
    subject = build_subject({}, common_name=common_name)
    assert SERVER.get_subject_alternative_names(subject, names) == expected


def test_user_subject_alternative_names() -> None:
    """Test that the common name is not added for user certificates."""
    subject = build_subject({}, common_name="example.com")
    assert USER.get_subject_alternative_names(subject) == []


def test_server_extensions(public_key: ec.EllipticCurvePublicKey) -> None:
    """Test extensions for server certificates."""
    extensions = get_extensions(SERVER, public_key)
    assert extensions[ExtensionOID.BASIC_CONSTRAINTS].critical is True
    assert extensions[ExtensionOID.BASIC_CONSTRAINTS].value == x509.BasicConstraints(
        ca=False, path_length=None
    )
    key_usage = extensions[ExtensionOID.KEY_USAGE]
    assert key_usage.critical is True
    assert key_usage.value.digital_signature is True  # type: ignore[attr-defined]
    assert key_usage.value.key_encipherment is True  # type: ignore[attr-defined]
    assert key_usage.value.key_cert_sign is False  # type: ignore[attr-defined]
    assert extensions[ExtensionOID.EXTENDED_KEY_USAGE].value == x509.ExtendedKeyUsage(
        [ExtendedKeyUsageOID.SERVER_AUTH]
    )
    assert extensions[ExtensionOID.SUBJECT_ALTERNATIVE_NAME].value == x509.SubjectAlternativeName(
        [x509.DNSName("example.com")]
    )
    assert extensions[ExtensionOID.CRL_DISTRIBUTION_POINTS].value == x509.CRLDistributionPoints(
        [
            x509.DistributionPoint(
                full_name=[x509.UniformResourceIdentifier(CRL_URL)],
                relative_name=None,
                reasons=None,
                crl_issuer=None,
            )
        ]
    )
    assert ExtensionOID.AUTHORITY_INFORMATION_ACCESS in extensions
    assert ExtensionOID.SUBJECT_KEY_IDENTIFIER in extensions
    assert ExtensionOID.AUTHORITY_KEY_IDENTIFIER in extensions
    assert ExtensionOID.OCSP_NO_CHECK not in extensions


def test_user_extensions(public_key: ec.EllipticCurvePublicKey) -> None:
    """Test extensions for user certificates."""
    extensions = get_extensions(USER, public_key, common_name="user@example.com")
    assert extensions[ExtensionOID.EXTENDED_KEY_USAGE].value == x509.ExtendedKeyUsage(
        [ExtendedKeyUsageOID.CLIENT_AUTH, ExtendedKeyUsageOID.EMAIL_PROTECTION]
    )
    assert extensions[ExtensionOID.KEY_USAGE].value.content_commitment is True  # type: ignore[attr-defined]
    assert ExtensionOID.SUBJECT_ALTERNATIVE_NAME not in extensions


def test_authority_extensions(public_key: ec.EllipticCurvePublicKey) -> None:
    """Test extensions for authorities."""
    root = get_extensions(ROOT_CA, public_key, common_name="Root")
    assert root[ExtensionOID.BASIC_CONSTRAINTS].value == x509.BasicConstraints(ca=True, path_length=None)
    assert root[ExtensionOID.KEY_USAGE].value.key_cert_sign is True  # type: ignore[attr-defined]
    assert root[ExtensionOID.KEY_USAGE].value.crl_sign is True  # type: ignore[attr-defined]
    assert ExtensionOID.CRL_DISTRIBUTION_POINTS not in root
    assert ExtensionOID.AUTHORITY_INFORMATION_ACCESS not in root
    assert ExtensionOID.EXTENDED_KEY_USAGE not in root

    intermediate = get_extensions(INTERMEDIATE_CA, public_key, common_name="Intermediate")
    assert intermediate[ExtensionOID.BASIC_CONSTRAINTS].value == x509.BasicConstraints(ca=True, path_length=0)
    assert ExtensionOID.CRL_DISTRIBUTION_POINTS in intermediate


def test_ocsp_extensions(public_key: ec.EllipticCurvePublicKey) -> None:
    """Test extensions for OCSP responder certificates."""
    extensions = get_extensions(OCSP, public_key, common_name="OCSP responder")
    assert extensions[ExtensionOID.EXTENDED_KEY_USAGE].critical is True
    assert extensions[ExtensionOID.EXTENDED_KEY_USAGE].value == x509.ExtendedKeyUsage(
        [ExtendedKeyUsageOID.OCSP_SIGNING]
    )
    assert extensions[ExtensionOID.OCSP_NO_CHECK].value == x509.OCSPNoCheck()
    assert ExtensionOID.AUTHORITY_INFORMATION_ACCESS not in extensions


def test_no_urls(public_key: ec.EllipticCurvePublicKey) -> None:
    """Test that no extensions for URLs are added if the authority has none."""
    subject = build_subject({}, common_name="example.com")
    oids = [ext.oid for ext in SERVER.get_extensions(subject, public_key, public_key)]
    assert ExtensionOID.CRL_DISTRIBUTION_POINTS not in oids
    assert ExtensionOID.AUTHORITY_INFORMATION_ACCESS not in oids

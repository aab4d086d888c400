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

"""Test the generate_ocsp management command."""

from datetime import timedelta

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID

from pytest_django.fixtures import SettingsWrapper

from django_pki.store import AuthorityStore
from django_pki.tests.base.assertions import assert_command_error, assert_extension, assert_validity
from django_pki.tests.base.utils import cmd, cmd_e2e


def test_generate_ocsp(intermediate_store: AuthorityStore) -> None:
    """Test generating the responder certificate of the intermediate authority."""
    path = intermediate_store.cert_path("ocsp")
    stdout, stderr = cmd_e2e(["generate-ocsp", "--validity", "10"])
    assert stdout == f"Generated OCSP responder certificate 1000.\nCertificate: {path}\n"
    assert stderr == ""

    certificate = intermediate_store.load_certificate(path)
    assert certificate.issuer == intermediate_store.certificate.subject
    assert_validity(certificate, timedelta(days=10))
    assert_extension(certificate, x509.ExtendedKeyUsage([ExtendedKeyUsageOID.OCSP_SIGNING]), critical=True)
    assert intermediate_store.key_path("ocsp").exists()


def test_replace(intermediate_store: AuthorityStore) -> None:
    """Test that generating a responder certificate again replaces the old one."""
    cmd("generate_ocsp")
    stdout, _stderr = cmd("generate_ocsp")
    assert stdout.startswith("Generated OCSP responder certificate 1001.\n")
    certificate = intermediate_store.load_certificate(intermediate_store.cert_path("ocsp"))
    assert certificate.serial_number == 0x1001


def test_root(root_store: AuthorityStore) -> None:
    """Test generating the responder certificate of the root authority."""
    stdout, _stderr = cmd_e2e(["generate-ocsp", "-rootca"])
    assert stdout.startswith("Generated OCSP responder certificate 1000.\n")
    certificate = root_store.load_certificate(root_store.cert_path("ocsp"))
    assert certificate.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)[0].value == (
        "Test Root CA OCSP Responder"
    )


def test_not_configured(settings: SettingsWrapper, root_store: AuthorityStore) -> None:
    """Test generating a responder certificate for an authority without an OCSP URL."""
    settings.PKI_AUTHORITIES = {"root": {"common_name": "Example Root"}}
    root_store.update_config()
    with assert_command_error(r"^ocsp: root: Authority has no OCSP responder configured\.$"):
        cmd("generate_ocsp", rootca=True)

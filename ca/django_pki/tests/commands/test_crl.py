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

"""Test the list_crl and generate_crl management commands."""

from pytest_django.fixtures import SettingsWrapper

from django_pki.constants import AuthorityKind, ReasonFlags
from django_pki.issuer import IssuedCertificate
from django_pki.revocation import RevocationEngine
from django_pki.store import AuthorityStore
from django_pki.tests.base.assertions import assert_command_error, assert_crl_serials, assert_output
from django_pki.tests.base.utils import cmd, cmd_e2e


def test_generate_crl(intermediate_store: AuthorityStore) -> None:
    """Test generating CRLs."""
    stdout, stderr = cmd_e2e(["generate-crl"])
    assert stdout == (
        f"Generated CRL number 4096 with 0 revoked certificate(s).\nCRL: {intermediate_store.crl_path}\n"
    )
    assert stderr == ""

    stdout, _stderr = cmd("generate_crl")
    assert stdout.startswith("Generated CRL number 4097 with 0 revoked certificate(s).\n")


def test_generate_root_crl(root_store: AuthorityStore, intermediate_store: AuthorityStore) -> None:
    """Test generating the CRL of the root authority after revoking the intermediate authority."""
    root_store.index.mark_revoked(0x1000, ReasonFlags.superseded)
    stdout, _stderr = cmd_e2e(["generate-crl", "-rootca"])
    assert_output(stdout, r"^Generated CRL number 4096 with 1 revoked certificate\(s\)\.$")
    assert_crl_serials(root_store.load_crl(), intermediate_store.certificate.serial_number)


def test_generate_crl_not_configured(settings: SettingsWrapper) -> None:
    """Test generating a CRL for an authority without a CRL URL."""
    settings.PKI_AUTHORITIES = {"root": {"common_name": "Example Root"}}
    store = AuthorityStore(AuthorityKind.root)
    store.initialize()
    store.provision_root()

    with assert_command_error(r"^crl: root: Authority has no CRL configured\.$"):
        cmd("generate_crl", rootca=True)


def test_list_crl(intermediate_store: AuthorityStore, server_cert: IssuedCertificate) -> None:
    """Test showing the CRL."""
    RevocationEngine(intermediate_store).revoke(server_cert.record.serial, ReasonFlags.key_compromise)
    stdout, stderr = cmd_e2e(["list-crl"])
    assert stderr == ""
    assert_output(
        stdout,
        r"^CRL number: 1000$",
        r"^Issuer: C=AT,.*,CN=Test Intermediate CA$",
        r"^Last update: \d{4}-\d{2}-\d{2}T",
        r"^Next update: \d{4}-\d{2}-\d{2}T",
        r"^Revoked certificates: 1$",
        r"^    1000\t\d{4}-\d{2}-\d{2}T.*\tkeyCompromise$",
    )


def test_list_empty_root_crl(root_store: AuthorityStore) -> None:
    """Test showing an empty CRL of the root authority."""
    RevocationEngine(root_store).generate_crl()
    stdout, _stderr = cmd("list_crl", rootca=True)
    assert_output(stdout, r"^Issuer: C=AT,.*,CN=Test Root CA$", r"^Revoked certificates: 0$")


def test_list_missing_crl(intermediate_store: AuthorityStore) -> None:  # pylint: disable=unused-argument
    """Test showing a CRL that was not generated yet."""
    with assert_command_error(r"^lookup: .*ca\.crl\.pem: CRL not found\.$"):
        cmd("list_crl")

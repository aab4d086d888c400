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

"""Test the revoke management command."""

from unittest import mock

import pytest

from django_pki.constants import ReasonFlags, Status
from django_pki.exceptions import StorageError
from django_pki.issuer import IssuedCertificate
from django_pki.store import AuthorityStore
from django_pki.tests.base.assertions import assert_command_error, assert_crl_serials
from django_pki.tests.base.utils import cmd, cmd_e2e


def test_revoke(intermediate_store: AuthorityStore, server_cert: IssuedCertificate) -> None:
    """Test revoking a certificate by prefix."""
    stdout, stderr = cmd_e2e(["revoke", "www.example.com", "keyCompromise"])
    assert stdout == f"Revoked 1000 (keyCompromise).\nCRL: {intermediate_store.crl_path}\n"
    assert stderr == ""

    record = intermediate_store.index.get(server_cert.record.serial)
    assert record.status == Status.revoked
    assert record.reason == ReasonFlags.key_compromise
    assert_crl_serials(intermediate_store.load_crl(), 0x1000)


@pytest.mark.parametrize(
    "reason,expected",
    (
        ([], ReasonFlags.unspecified),
        (["1"], ReasonFlags.key_compromise),
        (["superseded"], ReasonFlags.superseded),
        (["cessation_of_operation"], ReasonFlags.cessation_of_operation),
    ),
)
def test_reasons(
    intermediate_store: AuthorityStore,
    server_cert: IssuedCertificate,
    reason: list[str],
    expected: ReasonFlags,
) -> None:
    """Test passing reasons in the supported formats."""
    stdout, _stderr = cmd_e2e(["revoke", str(server_cert.path), *reason])
    assert stdout.startswith(f"Revoked 1000 ({expected.value}).\n")
    assert intermediate_store.index.get(0x1000).reason == expected


def test_revoke_twice(server_cert: IssuedCertificate) -> None:  # pylint: disable=unused-argument
    """Test revoking a certificate twice."""
    cmd("revoke", "www.example.com")
    with assert_command_error(r"^revoke: 1000: Certificate is already revoked\.$"):
        cmd("revoke", "www.example.com")


def test_stale_crl(intermediate_store: AuthorityStore, server_cert: IssuedCertificate) -> None:
    """Test that a failure to write the CRL is reported, but the certificate stays revoked."""
    with mock.patch.object(AuthorityStore, "write_crl", side_effect=StorageError("Disk full")):
        stdout, stderr = cmd("revoke", "www.example.com")
    assert stdout == "Revoked 1000 (unspecified).\n"
    assert stderr.startswith("Warning: intermediate: 1000 was revoked, but the CRL could not be regenerated")
    assert intermediate_store.index.get(server_cert.record.serial).revoked is True


def test_not_issued_by_intermediate(intermediate_store: AuthorityStore) -> None:
    """Test revoking the intermediate authority itself, which was issued by the root."""
    with assert_command_error(r"^lookup: .*: Certificate was not issued by the intermediate authority\.$"):
        cmd("revoke", str(intermediate_store.cert_path()))


def test_unknown_certificate(intermediate_store: AuthorityStore) -> None:  # pylint: disable=unused-argument
    """Test revoking a certificate that does not exist."""
    with assert_command_error(r"^lookup: example\.net: Certificate not found\.$"):
        cmd("revoke", "example.net")


def test_unknown_reason(server_cert: IssuedCertificate) -> None:  # pylint: disable=unused-argument
    """Test passing an unknown reason."""
    with pytest.raises(SystemExit) as excinfo:
        cmd_e2e(["revoke", "www.example.com", "wrong"])
    assert excinfo.value.code == 1

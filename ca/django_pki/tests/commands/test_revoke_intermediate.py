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

"""Test the revoke_intermediate management command."""

from django_pki.constants import ReasonFlags, Status
from django_pki.store import AuthorityStore
from django_pki.tests.base.assertions import assert_command_error, assert_crl_serials
from django_pki.tests.base.utils import cmd, cmd_e2e


def test_revoke_intermediate(root_store: AuthorityStore, intermediate_store: AuthorityStore) -> None:
    """Test revoking the intermediate authority."""
    stdout, stderr = cmd_e2e(["revoke-intermediate", "cACompromise"])
    assert stdout == f"Revoked 1000 (cACompromise).\nCRL: {root_store.crl_path}\n"
    assert stderr == ""

    record = root_store.index.get(intermediate_store.certificate.serial_number)
    assert record.status == Status.revoked
    assert record.reason == ReasonFlags.ca_compromise
    assert_crl_serials(root_store.load_crl(), 0x1000)


def test_default_reason(root_store: AuthorityStore, intermediate_store: AuthorityStore) -> None:
    """Test revoking the intermediate authority without a reason."""
    stdout, _stderr = cmd("revoke_intermediate")
    assert stdout.startswith("Revoked 1000 (unspecified).\n")
    assert root_store.index.get(0x1000).reason == ReasonFlags.unspecified

    with assert_command_error(r"^revoke: 1000: Certificate is already revoked\.$"):
        cmd("revoke_intermediate")


def test_without_intermediate(root_store: AuthorityStore) -> None:  # pylint: disable=unused-argument
    """Test revoking the intermediate authority before it was created."""
    with assert_command_error(r"^lookup: intermediate: Authority does not exist, create it first\.$"):
        cmd("revoke_intermediate")

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

"""Test the ocsp_responder management command."""

from unittest import mock

import pytest

from django_pki.issuer import IssuedCertificate
from django_pki.ocsp import generate_responder_certificate
from django_pki.store import AuthorityStore
from django_pki.tests.base.assertions import assert_command_error
from django_pki.tests.base.utils import cmd, cmd_e2e

RUN = "django_pki.management.commands.ocsp_responder.run"


def test_ocsp_responder(ocsp_responder: IssuedCertificate) -> None:  # pylint: disable=unused-argument
    """Test starting the responder for the intermediate authority."""
    with mock.patch(RUN) as run:
        stdout, stderr = cmd_e2e(["ocsp-responder", "8888", "--address", "127.0.0.1"])
    assert stdout == "Serving OCSP requests for intermediate on http://127.0.0.1:8888/ocsp/intermediate/\n"
    assert stderr == ""
    run.assert_called_once_with("127.0.0.1", 8888, mock.ANY, threading=True)


def test_root(root_store: AuthorityStore) -> None:
    """Test starting the responder for the root authority."""
    generate_responder_certificate(root_store)
    with mock.patch(RUN) as run:
        stdout, _stderr = cmd("ocsp_responder", 8080, rootca=True)
    assert stdout == "Serving OCSP requests for root on http://0.0.0.0:8080/ocsp/root/\n"
    run.assert_called_once_with("0.0.0.0", 8080, mock.ANY, threading=True)  # noqa: S104


def test_without_responder_certificate(intermediate_store: AuthorityStore) -> None:
    """Test that the responder does not start without a responder certificate."""
    with mock.patch(RUN) as run, assert_command_error(r"^lookup: .*ocsp\.key\.pem: Private key not found\.$"):
        cmd("ocsp_responder", 8888)
    run.assert_not_called()


@pytest.mark.parametrize("port", ("0", "65536", "foo"))
def test_invalid_port(port: str) -> None:
    """Test that usage errors exit with status code 0."""
    with mock.patch(RUN) as run, pytest.raises(SystemExit) as excinfo:
        cmd_e2e(["ocsp-responder", port])
    assert excinfo.value.code == 0
    run.assert_not_called()

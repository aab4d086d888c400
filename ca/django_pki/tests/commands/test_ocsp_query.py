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

"""Test the ocsp_query management command."""

# pylint: disable=redefined-outer-name  # requested pytest fixtures show up this way.

from typing import Any

from cryptography.hazmat.primitives.serialization import Encoding

import pytest
import requests_mock

from django_pki.constants import ReasonFlags
from django_pki.issuer import IssuedCertificate
from django_pki.ocsp import OCSPResponder
from django_pki.revocation import RevocationEngine
from django_pki.store import AuthorityStore
from django_pki.tests.base.assertions import assert_command_error, assert_output
from django_pki.tests.base.utils import cmd, cmd_e2e

URL = "http://localhost:8000/ocsp/intermediate/"


@pytest.fixture
def ocsp_server(
    requests_mock: requests_mock.Mocker,
    intermediate_store: AuthorityStore,
    ocsp_responder: IssuedCertificate,  # pylint: disable=unused-argument
) -> requests_mock.Mocker:
    """Fixture for the OCSP responder of the intermediate authority, reachable via HTTP."""
    responder = OCSPResponder(intermediate_store)

    def callback(request: Any, context: Any) -> bytes:
        context.headers["Content-Type"] = "application/ocsp-response"
        return responder.respond(request.body).public_bytes(Encoding.DER)

    requests_mock.post(URL, content=callback)
    return requests_mock


def test_good(ocsp_server: requests_mock.Mocker, server_cert: IssuedCertificate) -> None:
    """Test querying a valid certificate."""
    stdout, stderr = cmd_e2e(["ocsp-query", URL, "www.example.com"])
    assert stderr == ""
    lines = stdout.splitlines()
    assert lines[0] == "www.example.com: good"
    assert_output(stdout, r"^\tThis Update: \d{4}-", r"^\tNext Update: \d{4}-")
    assert ocsp_server.call_count == 1


def test_revoked(
    ocsp_server: requests_mock.Mocker,  # pylint: disable=unused-argument
    intermediate_store: AuthorityStore,
    server_cert: IssuedCertificate,
) -> None:
    """Test querying a revoked certificate."""
    RevocationEngine(intermediate_store).revoke(server_cert.record.serial, ReasonFlags.key_compromise)
    stdout, _stderr = cmd("ocsp_query", URL, str(server_cert.path))
    assert_output(
        stdout,
        rf"^{server_cert.path}: revoked$",
        r"^\tReason: keyCompromise$",
        r"^\tRevocation Time: \d{4}-",
    )


# pylint: disable-next=unused-argument
def test_request_failed(requests_mock: requests_mock.Mocker, server_cert: IssuedCertificate) -> None:
    """Test a responder that returns an HTTP error."""
    requests_mock.post(URL, status_code=500)
    with assert_command_error(rf"^ocsp: {URL}: Request failed: "):
        cmd("ocsp_query", URL, "www.example.com")


def test_unknown_certificate(intermediate_store: AuthorityStore) -> None:  # pylint: disable=unused-argument
    """Test querying a certificate that does not exist."""
    with assert_command_error(r"^lookup: example\.net: Certificate not found\.$"):
        cmd("ocsp_query", URL, "example.net")


def test_usage_error() -> None:
    """Test that usage errors exit with status code 0."""
    with pytest.raises(SystemExit) as excinfo:
        cmd_e2e(["ocsp-query", URL])
    assert excinfo.value.code == 0

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

"""Test the views serving CRLs and OCSP responses."""

import base64
from http import HTTPStatus

import pytest
from pytest_django.fixtures import SettingsWrapper

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509 import ocsp

from django.test import Client
from django.urls import reverse

from django_pki.issuer import IssuedCertificate
from django_pki.ocsp import generate_responder_certificate
from django_pki.revocation import RevocationEngine
from django_pki.store import AuthorityStore


def get_ocsp_request(certificate: x509.Certificate, issuer: x509.Certificate) -> bytes:
    """Get a DER encoded OCSP request."""
    builder = ocsp.OCSPRequestBuilder().add_certificate(certificate, issuer, hashes.SHA1())
    return builder.build().public_bytes(Encoding.DER)


def test_crl(client: Client, root_store: AuthorityStore) -> None:
    """Test downloading the CRL."""
    crl = RevocationEngine(root_store).generate_crl()
    url = reverse("django_pki:crl", kwargs={"kind": "root"})
    assert url == "/crl/root/"

    response = client.get(url)
    assert response.status_code == HTTPStatus.OK
    assert response["Content-Type"] == "application/pkix-crl"
    assert response.content == crl.public_bytes(Encoding.DER)

    response = client.get(url, {"encoding": "PEM"})
    assert response.status_code == HTTPStatus.OK
    assert response["Content-Type"] == "text/plain"
    assert response.content == crl.public_bytes(Encoding.PEM)


def test_crl_not_generated(client: Client, root_store: AuthorityStore) -> None:
    """Test downloading a CRL that was not generated yet."""
    response = client.get(reverse("django_pki:crl", kwargs={"kind": "root"}))
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.content == b"No CRL found."


def test_crl_invalid_encoding(client: Client, root_store: AuthorityStore) -> None:
    """Test requesting an invalid encoding."""
    response = client.get(reverse("django_pki:crl", kwargs={"kind": "root"}), {"encoding": "foo"})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.content == b"foo: Invalid encoding requested."


def test_unknown_authority(client: Client) -> None:
    """Test that only the root and the intermediate authority can be requested."""
    assert client.get("/crl/foo/").status_code == HTTPStatus.NOT_FOUND
    assert client.post("/ocsp/foo/", b"", content_type="application/ocsp-request").status_code == 404


@pytest.mark.usefixtures("ocsp_responder")
def test_ocsp_post(
    client: Client, intermediate_store: AuthorityStore, server_cert: IssuedCertificate
) -> None:
    """Test an OCSP request via HTTP POST."""
    data = get_ocsp_request(server_cert.certificate, intermediate_store.certificate)
    url = reverse("django_pki:ocsp-post", kwargs={"kind": "intermediate"})
    response = client.post(url, data, content_type="application/ocsp-request")
    assert response.status_code == HTTPStatus.OK
    assert response["Content-Type"] == "application/ocsp-response"

    ocsp_response = ocsp.load_der_ocsp_response(response.content)
    assert ocsp_response.response_status == ocsp.OCSPResponseStatus.SUCCESSFUL
    assert ocsp_response.certificate_status == ocsp.OCSPCertStatus.GOOD
    assert ocsp_response.serial_number == server_cert.certificate.serial_number


@pytest.mark.usefixtures("ocsp_responder")
def test_ocsp_get(
    client: Client, intermediate_store: AuthorityStore, server_cert: IssuedCertificate
) -> None:
    """Test an OCSP request via HTTP GET."""
    RevocationEngine(intermediate_store).revoke(server_cert.certificate.serial_number)
    data = base64.b64encode(get_ocsp_request(server_cert.certificate, intermediate_store.certificate))
    url = reverse("django_pki:ocsp-get", kwargs={"kind": "intermediate", "data": data.decode("ascii")})
    response = client.get(url)
    assert response.status_code == HTTPStatus.OK

    ocsp_response = ocsp.load_der_ocsp_response(response.content)
    assert ocsp_response.certificate_status == ocsp.OCSPCertStatus.REVOKED


def test_ocsp_root(client: Client, root_store: AuthorityStore, intermediate_store: AuthorityStore) -> None:
    """Test asking the root for the status of the intermediate."""
    generate_responder_certificate(root_store)
    data = get_ocsp_request(intermediate_store.certificate, root_store.certificate)
    response = client.post("/ocsp/root/", data, content_type="application/ocsp-request")
    ocsp_response = ocsp.load_der_ocsp_response(response.content)
    assert ocsp_response.certificate_status == ocsp.OCSPCertStatus.GOOD
    assert ocsp_response.serial_number == 0x1000


@pytest.mark.usefixtures("ocsp_responder")
def test_ocsp_malformed(client: Client) -> None:
    """Test malformed requests."""
    response = client.get("/ocsp/intermediate/abc")  # invalid padding
    assert ocsp.load_der_ocsp_response(response.content).response_status == (
        ocsp.OCSPResponseStatus.MALFORMED_REQUEST
    )

    response = client.post("/ocsp/intermediate/", b"foo", content_type="application/ocsp-request")
    assert ocsp.load_der_ocsp_response(response.content).response_status == (
        ocsp.OCSPResponseStatus.MALFORMED_REQUEST
    )


def test_ocsp_not_configured(
    settings: SettingsWrapper, client: Client, intermediate_store: AuthorityStore
) -> None:
    """Test an OCSP request for an authority without an OCSP responder."""
    settings.PKI_AUTHORITIES = {"intermediate": {"common_name": "Test Intermediate CA"}}
    intermediate_store.update_config()
    response = client.post("/ocsp/intermediate/", b"foo", content_type="application/ocsp-request")
    assert response.status_code == HTTPStatus.OK
    assert ocsp.load_der_ocsp_response(response.content).response_status == (
        ocsp.OCSPResponseStatus.UNAUTHORIZED
    )


def test_ocsp_without_responder_certificate(
    client: Client, intermediate_store: AuthorityStore, server_cert: IssuedCertificate
) -> None:
    """Test an OCSP request if no responder certificate was generated yet."""
    data = get_ocsp_request(server_cert.certificate, intermediate_store.certificate)
    response = client.post("/ocsp/intermediate/", data, content_type="application/ocsp-request")
    assert ocsp.load_der_ocsp_response(response.content).response_status == (
        ocsp.OCSPResponseStatus.INTERNAL_ERROR
    )

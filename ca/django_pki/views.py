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

"""Views for the django-pki app.

.. seealso::

   * https://docs.djangoproject.com/en/dev/topics/class-based-views/
"""

import base64
import binascii
import logging
from http import HTTPStatus

from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509 import ocsp

from django.http import HttpRequest, HttpResponse, HttpResponseBadRequest, HttpResponseNotFound
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from django.views.generic.base import View

from django_pki.constants import AuthorityKind
from django_pki.exceptions import NotFoundError, OcspNotConfigured
from django_pki.ocsp import OCSPResponder
from django_pki.store import AuthorityStore

log = logging.getLogger(__name__)

#: Encodings that can be requested from the CRL view.
CRL_ENCODINGS = {"DER": Encoding.DER, "PEM": Encoding.PEM}


class CertificateRevocationListView(View):
    """View that provides the current Certificate Revocation List (CRL) of an authority.

    The CRL is served as it was last generated, this view never generates a new one.
    """

    type: Encoding = Encoding.DER
    """Default encoding for the CRL."""

    content_type = None
    """Value of the Content-Type header used in the response. For CRLs in PEM format, use ``text/plain``."""

    def get(self, request: HttpRequest, kind: AuthorityKind) -> HttpResponse:
        # pylint: disable=missing-function-docstring; standard Django view function
        if get_encoding := request.GET.get("encoding"):
            if get_encoding not in CRL_ENCODINGS:
                return HttpResponseBadRequest(
                    f"{get_encoding}: Invalid encoding requested.", content_type="text/plain"
                )
            encoding = CRL_ENCODINGS[get_encoding]
        else:
            encoding = self.type

        store = AuthorityStore(kind)
        try:
            crl = store.load_crl()
        except NotFoundError:
            log.warning("%s: CRL requested, but no CRL was generated yet.", store.name)
            return HttpResponseNotFound("No CRL found.", content_type="text/plain")

        content_type = self.content_type
        if content_type is None:
            content_type = "application/pkix-crl" if encoding == Encoding.DER else "text/plain"
        return HttpResponse(crl.public_bytes(encoding), content_type=content_type)


@method_decorator(csrf_exempt, name="dispatch")
class OCSPView(View):
    """View to provide an OCSP responder for an authority.

    Requests are accepted both via GET (base64 encoded request in the URL) and via POST (DER encoded request
    in the body).
    """

    def get(self, request: HttpRequest, kind: AuthorityKind, data: str) -> HttpResponse:
        # pylint: disable=missing-function-docstring; standard Django view function
        try:
            decoded_data = base64.b64decode(data)
        except binascii.Error:
            return self.malformed_request()

        try:
            return self.process_ocsp_request(kind, decoded_data)
        except Exception as e:  # pylint: disable=broad-except; we really need to catch everything here
            log.exception(e)
            return self.fail()

    def post(self, request: HttpRequest, kind: AuthorityKind) -> HttpResponse:
        # pylint: disable=missing-function-docstring; standard Django view function
        try:
            return self.process_ocsp_request(kind, request.body)
        except Exception as e:  # pylint: disable=broad-except; we really need to catch everything here
            log.exception(e)
            return self.fail()

    def fail(self, status: ocsp.OCSPResponseStatus = ocsp.OCSPResponseStatus.INTERNAL_ERROR) -> HttpResponse:
        """Generic method to return a failure response."""
        return self.http_response(
            ocsp.OCSPResponseBuilder.build_unsuccessful(status).public_bytes(Encoding.DER)
        )

    def http_response(self, data: bytes, status: int = HTTPStatus.OK) -> HttpResponse:
        """Get an HTTP OCSP response with given status and data."""
        return HttpResponse(data, status=status, content_type="application/ocsp-response")

    def malformed_request(self) -> HttpResponse:
        """Get a response for a malformed request."""
        return self.fail(ocsp.OCSPResponseStatus.MALFORMED_REQUEST)

    def get_responder(self, kind: AuthorityKind) -> OCSPResponder:
        """Get the responder for the given authority."""
        return OCSPResponder(AuthorityStore(kind))

    def process_ocsp_request(self, kind: AuthorityKind, data: bytes) -> HttpResponse:
        """Process OCSP request data."""
        try:
            responder = self.get_responder(kind)
        except OcspNotConfigured as ex:
            log.error("%s", ex)
            return self.fail(ocsp.OCSPResponseStatus.UNAUTHORIZED)

        response = responder.respond(data)
        return self.http_response(response.public_bytes(Encoding.DER))

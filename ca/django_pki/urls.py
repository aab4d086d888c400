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

"""URL configuration for this project."""

from django.urls import URLPattern, URLResolver, path, register_converter

from django_pki import converters, views

app_name = "django_pki"

register_converter(converters.AuthorityKindConverter, "django-pki-authority")
register_converter(converters.Base64Converter, "django-pki-base64")

urlpatterns: list[URLResolver | URLPattern] = [
    path("ocsp/<django-pki-authority:kind>/", views.OCSPView.as_view(), name="ocsp-post"),
    path(
        "ocsp/<django-pki-authority:kind>/<django-pki-base64:data>",
        views.OCSPView.as_view(),
        name="ocsp-get",
    ),
    path("crl/<django-pki-authority:kind>/", views.CertificateRevocationListView.as_view(), name="crl"),
]

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

"""Root URL configuration, serving OCSP responses and CRLs of both authorities."""

from django.urls import include, path

urlpatterns = [
    path("", include("django_pki.urls")),
]

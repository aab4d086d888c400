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

"""django-pki custom URL converters.

.. seealso:: https://docs.djangoproject.com/en/dev/topics/http/urls/
"""
# pylint: disable=missing-function-docstring; All functions are given by Django

from typing import Union

from django_pki.constants import AuthorityKind


class AuthorityKindConverter:
    """Converter that accepts the name of an authority."""

    regex = "|".join(kind.value for kind in AuthorityKind)

    def to_python(self, value: str) -> AuthorityKind:
        return AuthorityKind(value)

    def to_url(self, value: Union[str, AuthorityKind]) -> str:
        return AuthorityKind(value).value


class Base64Converter:
    """Converter that accepts Base64 encoded data."""

    regex = "[a-zA-Z0-9=+/]+"

    def to_python(self, value: str) -> str:
        return value

    def to_url(self, value: str) -> str:
        return value

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

"""pytest configuration."""

# pylint: disable=redefined-outer-name  # requested pytest fixtures show up this way.

from pathlib import Path

import pytest
from pytest_django.fixtures import SettingsWrapper

from django_pki.constants import AuthorityKind
from django_pki.issuer import CertificateIssuer, IssuedCertificate, SubjectRequest
from django_pki.ocsp import generate_responder_certificate
from django_pki.profiles import SERVER, USER
from django_pki.store import AuthorityStore


@pytest.fixture(autouse=True)
def pki_dir(settings: SettingsWrapper, tmp_path: Path) -> Path:
    """Fixture to use a temporary PKI_DIR for every test."""
    settings.PKI_DIR = tmp_path / "pki"
    return tmp_path / "pki"


@pytest.fixture
def root_store(pki_dir: Path) -> AuthorityStore:  # pylint: disable=unused-argument
    """Fixture for an initialized root authority."""
    store = AuthorityStore(AuthorityKind.root)
    store.initialize()
    store.provision_root()
    return store


@pytest.fixture
def intermediate_store(root_store: AuthorityStore) -> AuthorityStore:
    """Fixture for an initialized intermediate authority signed by `root_store`."""
    store = AuthorityStore(AuthorityKind.intermediate)
    store.initialize()
    store.provision_intermediate(root_store)
    return store


@pytest.fixture
def server_cert(intermediate_store: AuthorityStore) -> IssuedCertificate:
    """Fixture for a server certificate for www.example.com."""
    subject = SubjectRequest(
        common_name="www.example.com", fields=intermediate_store.config.subject
    )
    return CertificateIssuer(intermediate_store).issue(SERVER, subject)


@pytest.fixture
def user_cert(intermediate_store: AuthorityStore) -> IssuedCertificate:
    """Fixture for a user certificate."""
    subject = SubjectRequest(
        common_name="user@example.com",
        subject_alternative_names=("email:user@example.com",),
    )
    return CertificateIssuer(intermediate_store).issue(USER, subject, prefix="user")


@pytest.fixture
def ocsp_responder(intermediate_store: AuthorityStore) -> IssuedCertificate:
    """Fixture for the OCSP responder certificate of the intermediate authority."""
    return generate_responder_certificate(intermediate_store)

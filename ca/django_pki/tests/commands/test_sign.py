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

"""Test the sign management command."""

from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

from django_pki.constants import Status
from django_pki.store import AuthorityStore
from django_pki.tests.base.assertions import assert_command_error, assert_output
from django_pki.tests.base.utils import cmd, cmd_e2e, generate_csr


def test_sign(tmp_path: Path, intermediate_store: AuthorityStore) -> None:
    """Test signing a PEM encoded CSR."""
    csr_path = tmp_path / "csr.pem"
    out = tmp_path / "cert.pem"
    csr = generate_csr("www.example.com", O="Django PKI")
    csr_path.write_bytes(csr.public_bytes(Encoding.PEM))

    stdout, stderr = cmd_e2e(["sign", "server", str(csr_path), str(out)])
    assert stderr == ""
    assert_output(stdout, r"^Signed server certificate 1000\.$", rf"^Certificate: {out}$")

    certificate = x509.load_pem_x509_certificate(out.read_bytes())
    assert certificate.public_key() == csr.public_key()
    assert certificate.issuer == intermediate_store.certificate.subject
    assert intermediate_store.index.get(0x1000).status == Status.valid


def test_der(tmp_path: Path, intermediate_store: AuthorityStore) -> None:
    """Test signing a DER encoded CSR."""
    csr_path = tmp_path / "csr.der"
    out = tmp_path / "cert.pem"
    csr_path.write_bytes(generate_csr("user@example.com").public_bytes(Encoding.DER))

    stdout, _stderr = cmd("sign", "user", csr_path, out)
    assert_output(stdout, r"^Signed user certificate 1000\.$")
    assert intermediate_store.index.get(0x1000).common_name == "user@example.com"


def test_missing_csr(tmp_path: Path, intermediate_store: AuthorityStore) -> None:
    """Test passing a CSR that does not exist."""
    with assert_command_error(r"csr\.pem: Cannot read CSR: No such file or directory$"):
        cmd("sign", "server", tmp_path / "csr.pem", tmp_path / "cert.pem")
    assert list(intermediate_store.index.list()) == []


def test_invalid_csr(tmp_path: Path, intermediate_store: AuthorityStore) -> None:
    """Test passing a file that is not a CSR."""
    csr_path = tmp_path / "csr.pem"
    csr_path.write_text("foobar")
    with assert_command_error(r"csr\.pem: Cannot parse CSR: "):
        cmd("sign", "server", csr_path, tmp_path / "cert.pem")
    assert list(intermediate_store.index.list()) == []


def test_existing_output(tmp_path: Path, intermediate_store: AuthorityStore) -> None:
    """Test that an existing file is not overwritten."""
    csr_path = tmp_path / "csr.pem"
    out = tmp_path / "cert.pem"
    out.write_text("existing")
    csr_path.write_bytes(generate_csr("www.example.com").public_bytes(Encoding.PEM))

    with assert_command_error(r"cert\.pem: File already exists\.$"):
        cmd("sign", "server", csr_path, out)
    assert out.read_text() == "existing"
    assert list(intermediate_store.index.list()) == []

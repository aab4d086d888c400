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

"""Utility functions used in testing."""

import typing
from io import StringIO
from typing import Any, Optional
from unittest import mock

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from django.core.management import ManagementUtility, call_command

from django_pki.__main__ import get_argv
from django_pki.utils import build_subject


def cmd(
    *args: Any, stdout: Optional[StringIO] = None, stderr: Optional[StringIO] = None, **kwargs: Any
) -> tuple[str, str]:
    """Call to a manage.py command using call_command."""
    if stdout is None:
        stdout = StringIO()
    if stderr is None:
        stderr = StringIO()
    stdin = kwargs.pop("stdin", StringIO())

    with mock.patch("sys.stdin", stdin):
        call_command(*args, stdout=stdout, stderr=stderr, **kwargs)

    return stdout.getvalue(), stderr.getvalue()


def cmd_e2e(
    args: typing.Sequence[str],
    stdin: Optional[StringIO] = None,
    stdout: Optional[StringIO] = None,
    stderr: Optional[StringIO] = None,
) -> tuple[str, str]:
    """Call a management command the way the ``django-pki`` script does.

    Unlike call_command, this method also tests the argparse configuration of the called command.
    """
    stdout = stdout or StringIO()
    stderr = stderr or StringIO()
    if stdin is None:
        stdin = StringIO()

    with mock.patch("sys.stdin", stdin), mock.patch("sys.stdout", stdout), mock.patch("sys.stderr", stderr):
        util = ManagementUtility(get_argv(["django-pki", *args]))
        util.execute()

    return stdout.getvalue(), stderr.getvalue()


def generate_csr(
    common_name: str, extensions: typing.Sequence[x509.ExtensionType] = (), **fields: str
) -> x509.CertificateSigningRequest:
    """Generate a CSR signed by a new EC key."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    builder = x509.CertificateSigningRequestBuilder()
    builder = builder.subject_name(build_subject(fields, common_name=common_name))
    for extension in extensions:
        builder = builder.add_extension(extension, critical=False)
    return builder.sign(private_key, hashes.SHA256())

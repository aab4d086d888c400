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

"""Central functions to format and parse names, serials and files."""

import contextlib
import fcntl
import os
import re
import tempfile
import time
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime, timezone as tz
from ipaddress import ip_address
from pathlib import Path
from typing import Optional, Union

import idna

from cryptography import x509
from cryptography.x509.oid import NameOID

from django.core.exceptions import ValidationError
from django.core.validators import URLValidator, validate_email

from django_pki import constants
from django_pki.exceptions import StorageError

#: Regular expression to match general names with an explicit type prefix
GENERAL_NAME_RE = re.compile("^(email|URI|IP|DNS):(.*)", flags=re.I)

#: Regular expression matching certificate serials as hex
SERIAL_RE = re.compile("^[0-9A-F]+$", flags=re.I)

# Splits "/C=AT/CN=example.com" into its attributes, a "/" inside a value is not a separator
_OPENSSL_NAME_RE = re.compile(r"/(?=[A-Za-z0-9.]+=)")

_url_validator = URLValidator()

SAN_NAME_MAPPINGS = {
    x509.DNSName: "DNS",
    x509.RFC822Name: "email",
    x509.UniformResourceIdentifier: "URI",
    x509.IPAddress: "IP",
}


def add_colons(value: str, pad: str = "0") -> str:
    """Add colons after every second digit.

    This function is used in functions to prettify serials.

    >>> add_colons('teststring')
    'te:st:st:ri:ng'
    """
    if len(value) % 2 == 1 and pad:
        value = f"{pad}{value}"

    return ":".join([value[i : i + 2] for i in range(0, len(value), 2)])


def int_to_hex(i: int) -> str:
    """Create a hex-representation of the given serial.

    The value is always padded to an even number of digits, as OpenSSL does in its index and serial files.

    >>> int_to_hex(12345678)
    'BC614E'
    >>> int_to_hex(4096)
    '1000'
    """
    value = hex(i)[2:].upper()
    if len(value) % 2 == 1:
        value = f"0{value}"
    return value


def hex_to_int(value: str) -> int:
    """Parse a serial given as hex, optionally with colons.

    >>> hex_to_int("10:00")
    4096
    """
    value = value.strip().replace(":", "")
    if not SERIAL_RE.match(value):
        raise ValueError(f"{value}: Not a valid serial.")
    return int(value, 16)


def format_name_rfc4514(subject: x509.Name) -> str:
    """Format the given name as RFC4514 compatible string.

    Unlike :py:meth:`~cg:cryptography.x509.Name.rfc4514_string`, attributes are displayed in the order they
    appear in the certificate.

    >>> format_name_rfc4514(x509.Name([x509.NameAttribute(NameOID.COUNTRY_NAME, "AT"),
    ...                                x509.NameAttribute(NameOID.COMMON_NAME, "example.com")]))
    'C=AT,CN=example.com'
    """
    subject = x509.Name(reversed(list(subject)))
    return subject.rfc4514_string(attr_name_overrides=dict(constants.RFC4514_NAME_OVERRIDES))


def parse_name_rfc4514(value: str) -> x509.Name:
    """Parse an RFC 4514 formatted string into a :py:class:`~cg:cryptography.x509.Name`.

    This function is the inverse of :py:func:`~django_pki.utils.format_name_rfc4514`.

    >>> parse_name_rfc4514("C=AT,O=MyOrg,CN=example.com")
    <Name(C=AT,O=MyOrg,CN=example.com)>
    """
    overrides = {v: k for k, v in constants.RFC4514_NAME_OVERRIDES.items()}
    try:
        name = x509.Name.from_rfc4514_string(value, overrides)
    except ValueError as ex:
        # The parser raises ValueError with an empty string for some values
        if not ex.args or not ex.args[0]:
            raise ValueError(f"{value}: Could not parse name as RFC 4514 string.") from ex
        raise

    return x509.Name(reversed(list(name)))


def format_name_openssl(subject: x509.Name) -> str:
    """Format a name the way OpenSSL writes it to its index file.

    >>> format_name_openssl(parse_name_rfc4514("C=AT,CN=example.com"))
    '/C=AT/CN=example.com'
    """
    parts = []
    for attr in subject:
        key = constants.NAME_OID_SHORT_NAMES.get(attr.oid, attr.oid.dotted_string)
        parts.append(f"{key}={attr.value}")
    return "/" + "/".join(parts)


def parse_name_openssl(value: str) -> x509.Name:
    """Parse a name in the format used by OpenSSL, e.g. ``/C=AT/CN=example.com``.

    >>> parse_name_openssl("/C=AT/CN=example.com")
    <Name(C=AT,CN=example.com)>
    """
    value = value.strip()
    if not value.startswith("/"):
        raise ValueError(f"{value}: Name must start with a slash.")

    attributes = []
    for part in _OPENSSL_NAME_RE.split(value[1:]):
        if "=" not in part:
            raise ValueError(f"{part}: Name attribute has no value.")
        key, attr_value = part.split("=", 1)
        if key in constants.NAME_OID_TYPES:
            oid = constants.NAME_OID_TYPES[key]
        else:
            try:
                oid = x509.ObjectIdentifier(key)
            except ValueError as ex:
                raise ValueError(f"{key}: Unknown name attribute.") from ex
        attributes.append(x509.NameAttribute(oid, attr_value))
    return x509.Name(attributes)


def build_subject(fields: Mapping[str, str], common_name: Optional[str] = None) -> x509.Name:
    """Build a subject from the given fields, in the canonical order.

    >>> build_subject({"O": "Example", "C": "AT"}, common_name="example.com")
    <Name(C=AT,O=Example,CN=example.com)>
    """
    values = {k: v for k, v in fields.items() if v}
    if common_name:
        values["CN"] = common_name

    for key in values:
        if key not in constants.NAME_OID_TYPES:
            raise ValueError(f"{key}: Unknown subject field.")

    return x509.Name(
        [
            x509.NameAttribute(constants.NAME_OID_TYPES[key], values[key])
            for key in constants.SUBJECT_FIELDS
            if key in values
        ]
    )


def get_common_name(name: x509.Name) -> Optional[str]:
    """Get the common name of a name, or ``None`` if it has none."""
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return None
    value = attrs[0].value
    if isinstance(value, bytes):  # pragma: no cover  # only for exotic encodings
        return value.decode("utf-8")
    return value


def validate_hostname(hostname: str) -> str:
    """Validate a hostname.

    >>> validate_hostname('example.com')
    'example.com'
    """
    try:
        encoded: str = idna.encode(hostname).decode("utf-8")
    except idna.IDNAError as ex:
        raise ValueError(f"{hostname}: Not a valid hostname") from ex
    return encoded


def is_hostname(value: str) -> bool:
    """Return ``True`` if `value` is a host name that can be added as DNS name."""
    if "." not in value or " " in value:
        return False
    try:
        validate_hostname(value.lstrip("*."))
    except ValueError:
        return False
    return True


def parse_general_name(name: Union[str, x509.GeneralName]) -> x509.GeneralName:
    """Parse a general name from user input.

    A name may be prefixed with its type (``DNS:``, ``IP:``, ``email:`` or ``URI:``), otherwise the type is
    detected from the value:

    >>> parse_general_name("example.com")
    <DNSName(value='example.com')>
    >>> parse_general_name("IP:127.0.0.1")
    <IPAddress(value=127.0.0.1)>
    >>> parse_general_name("user@example.com")
    <RFC822Name(value='user@example.com')>
    """
    if isinstance(name, x509.GeneralName):
        return name

    name = name.strip()
    typ = None
    match = GENERAL_NAME_RE.match(name)
    if match is not None:
        typ, name = match.groups()
        typ = typ.lower()

    if typ is None:
        if re.match("[a-z0-9]{2,}://", name):
            typ = "uri"
        elif "@" in name:
            typ = "email"
        else:
            try:
                return x509.IPAddress(ip_address(name))
            except ValueError:
                typ = "dns"

    try:
        if typ == "uri":
            _url_validator(name)
            return x509.UniformResourceIdentifier(name)
        if typ == "email":
            validate_email(name)
            return x509.RFC822Name(name)
    except ValidationError as ex:
        raise ValueError(f"{name}: Invalid {typ} value.") from ex

    if typ == "ip":
        try:
            return x509.IPAddress(ip_address(name))
        except ValueError as ex:
            raise ValueError(f"{name}: Could not parse IP address") from ex

    if name.startswith("*."):
        return x509.DNSName(f"*.{validate_hostname(name[2:])}")
    return x509.DNSName(validate_hostname(name))


def parse_subject_alternative_names(value: Union[str, Iterable[str]]) -> list[x509.GeneralName]:
    """Parse a comma separated list of subject alternative names.

    >>> parse_subject_alternative_names("DNS:example.com, IP:127.0.0.1")
    [<DNSName(value='example.com')>, <IPAddress(value=127.0.0.1)>]
    """
    if isinstance(value, str):
        value = value.split(",")
    return [parse_general_name(name) for name in value if name.strip()]


def format_general_name(name: x509.GeneralName) -> str:
    """Format a general name the way OpenSSL does.

    >>> format_general_name(x509.DNSName("example.com"))
    'DNS:example.com'
    """
    return f"{SAN_NAME_MAPPINGS.get(type(name), type(name).__name__)}:{name.value}"


def now() -> datetime:
    """Get the current time as timezone-aware datetime, without microseconds."""
    return datetime.now(tz=tz.utc).replace(microsecond=0)


def atomic_write(path: Path, data: bytes, mode: int = 0o644) -> None:
    """Write `data` to `path` so that readers never see a partially written file.

    The data is written to a temporary file in the same directory that is renamed to `path`.
    """
    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as stream:
            stream.write(data)
            stream.flush()
            os.fsync(stream.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def write_protected(path: Path, data: bytes, mode: int) -> None:
    """Write a new file with restrictive permissions, failing if it already exists."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "wb") as stream:
        stream.write(data)
    os.chmod(path, mode)


@contextlib.contextmanager
def file_lock(path: Path, timeout: float = 30.0) -> Iterator[None]:
    """Hold an exclusive advisory lock on `path` for the duration of the context.

    The lock is taken on a separate file descriptor, so it also excludes other threads of the same process.
    """
    start = time.monotonic()
    try:
        stream = open(path, "a+", encoding="utf-8")  # pylint: disable=consider-using-with
    except OSError as ex:
        raise StorageError(f"Cannot open lock file: {ex}", path=path) from ex

    with stream:
        while True:
            try:
                fcntl.flock(stream.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError as ex:
                if time.monotonic() - start > timeout:
                    raise StorageError("Timeout while waiting for lock.", path=path) from ex
                time.sleep(0.01)

        try:
            yield
        finally:
            fcntl.flock(stream.fileno(), fcntl.LOCK_UN)

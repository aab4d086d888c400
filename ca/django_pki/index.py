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

"""The index of all certificates issued by an authority.

The index is stored in the format used by OpenSSL (see :manpage:`openssl-ca(1SSL)` and
http://pki-tutorial.readthedocs.org/en/latest/cadb.html), so that it can also be used with
``openssl ocsp -index``. Every line has six tab-separated columns:

#. The status flag (``V`` for valid, ``R`` for revoked).
#. The expiry date.
#. The revocation date, optionally followed by a comma and the reason (empty for valid certificates).
#. The serial as hex.
#. The file name of the certificate.
#. The subject in the format ``/C=AT/CN=example.com``.

The status ``E`` (expired) is never written, expiry is derived from the current time whenever the status is
read.
"""

import logging
from collections.abc import Iterator
from datetime import datetime, timezone as tz
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from cryptography import x509

from django_pki.constants import (
    INDEX_DATE_FORMAT,
    INDEX_GENERALIZED_DATE_FORMAT,
    ReasonFlags,
    Status,
)
from django_pki.exceptions import AlreadyRevokedError, DuplicateSerialError, NotFoundError, StorageError
from django_pki.utils import (
    atomic_write,
    file_lock,
    format_name_openssl,
    get_common_name,
    hex_to_int,
    int_to_hex,
    now as get_now,
    parse_name_openssl,
)

log = logging.getLogger(__name__)


def format_index_date(value: datetime) -> str:
    """Format a timestamp as used in the index file.

    >>> format_index_date(datetime(2024, 1, 2, 3, 4, 5, tzinfo=tz.utc))
    '240102030405Z'
    >>> format_index_date(datetime(2050, 1, 2, 3, 4, 5, tzinfo=tz.utc))
    '20500102030405Z'
    """
    value = value.astimezone(tz.utc)
    if value.year >= 2050:
        return value.strftime(INDEX_GENERALIZED_DATE_FORMAT)
    return value.strftime(INDEX_DATE_FORMAT)


def parse_index_date(value: str) -> datetime:
    """Parse a timestamp from the index file."""
    if len(value) == 15:
        parsed = datetime.strptime(value, INDEX_GENERALIZED_DATE_FORMAT)
    else:
        parsed = datetime.strptime(value, INDEX_DATE_FORMAT)
        # Two-digit years are 1950-2049, as in the ASN.1 UTCTime type
        if parsed.year >= 2050:
            parsed = parsed.replace(year=parsed.year - 100)
    return parsed.replace(tzinfo=tz.utc)


class CertificateRecord(BaseModel):
    """A single certificate in the index."""

    model_config = ConfigDict(frozen=True)

    serial: int
    subject: str
    not_after: datetime
    not_before: Optional[datetime] = None
    status: Status = Status.valid
    revoked_at: Optional[datetime] = None
    reason: Optional[ReasonFlags] = None
    filename: str = "unknown"

    @model_validator(mode="after")
    def check_revocation(self) -> "CertificateRecord":
        """Validate that revocation data is present if and only if the certificate is revoked."""
        if self.status == Status.expired:
            raise ValueError("Expired status is derived and cannot be stored.")
        revoked = self.status == Status.revoked
        if revoked != (self.revoked_at is not None) or revoked != (self.reason is not None):
            raise ValueError("Revocation date and reason must be set for revoked certificates only.")
        for field in (self.subject, self.filename):
            if "\t" in field or "\n" in field:
                raise ValueError(f"{field!r}: Field must not contain tabs or newlines.")
        return self

    @classmethod
    def from_certificate(cls, certificate: x509.Certificate, filename: str) -> "CertificateRecord":
        """Create a new (valid) record for the given certificate."""
        return cls(
            serial=certificate.serial_number,
            subject=format_name_openssl(certificate.subject),
            not_before=certificate.not_valid_before_utc,
            not_after=certificate.not_valid_after_utc,
            filename=filename,
        )

    @classmethod
    def from_line(cls, line: str) -> "CertificateRecord":
        """Parse a line from the index file."""
        fields = line.rstrip("\n").split("\t")
        if len(fields) != 6:
            raise ValueError(f"Line has {len(fields)} instead of 6 fields.")
        flag, not_after, revocation, serial, filename, subject = fields

        if flag == Status.revoked.value:
            if "," in revocation:
                revoked_at, reason = revocation.split(",", 1)
            else:
                revoked_at, reason = revocation, ReasonFlags.unspecified.value
            return cls(
                serial=hex_to_int(serial),
                subject=subject,
                not_after=parse_index_date(not_after),
                status=Status.revoked,
                revoked_at=parse_index_date(revoked_at),
                reason=ReasonFlags(reason),
                filename=filename,
            )
        if flag in (Status.valid.value, Status.expired.value):
            return cls(
                serial=hex_to_int(serial),
                subject=subject,
                not_after=parse_index_date(not_after),
                filename=filename,
            )
        raise ValueError(f"{flag}: Unknown status flag.")

    def to_line(self) -> str:
        """Format the record as line for the index file."""
        revocation = ""
        if self.revoked_at is not None and self.reason is not None:
            revocation = format_index_date(self.revoked_at)
            if self.reason != ReasonFlags.unspecified:
                revocation += f",{self.reason.value}"
        fields = (
            self.status.value,
            format_index_date(self.not_after),
            revocation,
            self.hex_serial,
            self.filename,
            self.subject,
        )
        return "\t".join(fields) + "\n"

    @property
    def hex_serial(self) -> str:
        """The serial as hex string."""
        return int_to_hex(self.serial)

    @property
    def name(self) -> x509.Name:
        """The subject as :py:class:`~cg:cryptography.x509.Name`."""
        return parse_name_openssl(self.subject)

    @property
    def common_name(self) -> Optional[str]:
        """The common name of the subject."""
        return get_common_name(self.name)

    @property
    def revoked(self) -> bool:
        """``True`` if the certificate is revoked."""
        return self.status == Status.revoked


def status_of(record: CertificateRecord, now: datetime) -> Status:
    """Get the effective status of a record at the given time.

    A revocation always takes precedence over expiry. A certificate is still valid at its notAfter time.
    """
    if record.status == Status.revoked:
        return Status.revoked
    if record.not_after < now:
        return Status.expired
    return Status.valid


class IndexDatabase:
    """The index of all certificates issued by one authority.

    Writers take an exclusive lock on a separate lock file, every write replaces the whole file atomically.
    Readers take no lock and always see a consistent state.
    """

    def __init__(self, path: Path, authority: Optional[str] = None) -> None:
        self.path = path
        self.authority = authority
        self.lock_path = path.with_name(f"{path.name}.lock")

    def __repr__(self) -> str:
        return f"<IndexDatabase: {self.path}>"

    def initialize(self) -> None:
        """Create an empty index."""
        self._write({})

    def _read(self) -> dict[int, CertificateRecord]:
        try:
            with open(self.path, encoding="utf-8") as stream:
                lines = stream.readlines()
        except OSError as ex:
            raise StorageError(f"Cannot read index: {ex}", authority=self.authority, path=self.path) from ex

        records: dict[int, CertificateRecord] = {}
        for lineno, line in enumerate(lines, 1):
            if not line.strip():
                continue
            try:
                record = CertificateRecord.from_line(line)
            except ValueError as ex:
                raise StorageError(
                    f"Line {lineno}: {ex}", authority=self.authority, path=self.path, step="index"
                ) from ex
            records[record.serial] = record
        return records

    def _write(self, records: dict[int, CertificateRecord]) -> None:
        data = "".join(records[serial].to_line() for serial in sorted(records))
        try:
            atomic_write(self.path, data.encode("utf-8"))
        except OSError as ex:
            raise StorageError(f"Cannot write index: {ex}", authority=self.authority, path=self.path) from ex

    def _load_not_before(self, record: CertificateRecord) -> CertificateRecord:
        if record.not_before is not None:
            return record

        path = self.path.parent / record.filename
        try:
            certificate = x509.load_pem_x509_certificate(path.read_bytes())
        except (OSError, ValueError):
            return record
        return record.model_copy(update={"not_before": certificate.not_valid_before_utc})

    def append(self, record: CertificateRecord) -> None:
        """Add a new record to the index."""
        with file_lock(self.lock_path):
            records = self._read()
            if record.serial in records:
                raise DuplicateSerialError(
                    f"{record.hex_serial}: Serial is already in the index.",
                    authority=self.authority,
                    serial=record.serial,
                )
            records[record.serial] = record
            self._write(records)
        log.info("%s: Added %s (%s) to the index.", self.authority, record.hex_serial, record.subject)

    def mark_revoked(
        self, serial: int, reason: ReasonFlags, at: Optional[datetime] = None
    ) -> CertificateRecord:
        """Mark the certificate with the given serial as revoked."""
        if at is None:
            at = get_now()

        with file_lock(self.lock_path):
            records = self._read()
            try:
                record = records[serial]
            except KeyError as ex:
                raise NotFoundError(
                    f"{int_to_hex(serial)}: Certificate not found.", authority=self.authority, serial=serial
                ) from ex

            if record.revoked:
                raise AlreadyRevokedError(
                    f"{record.hex_serial}: Certificate is already revoked.",
                    authority=self.authority,
                    serial=serial,
                )

            record = record.model_copy(update={"status": Status.revoked, "revoked_at": at, "reason": reason})
            records[serial] = record
            self._write(records)

        log.info("%s: Revoked %s (reason: %s).", self.authority, record.hex_serial, reason.value)
        return self._load_not_before(record)

    def get(self, serial: int) -> CertificateRecord:
        """Get the record for the given serial."""
        try:
            record = self._read()[serial]
        except KeyError as ex:
            raise NotFoundError(
                f"{int_to_hex(serial)}: Certificate not found.", authority=self.authority, serial=serial
            ) from ex
        return self._load_not_before(record)

    def find_by_common_name(self, common_name: str) -> list[CertificateRecord]:
        """Get all records with the given common name, ordered by serial."""
        return [record for record in self.list() if record.common_name == common_name]

    def status_of(self, serial: int, now: Optional[datetime] = None) -> Status:
        """Get the effective status of the certificate with the given serial."""
        if now is None:
            now = get_now()
        return status_of(self.get(serial), now)

    def revoked(self) -> list[CertificateRecord]:
        """Get a snapshot of all revoked records, ordered by serial."""
        return [record for record in self.list() if record.revoked]

    def list(self) -> Iterator[CertificateRecord]:
        """Iterate over all records, ordered by serial."""
        records = self._read()
        for serial in sorted(records):
            yield self._load_not_before(records[serial])


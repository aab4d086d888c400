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

"""Persisted counters for certificate serials and CRL numbers.

Counters are stored as hex in a single line, the same format that OpenSSL uses for its ``serial`` and
``crlnumber`` files. Every value is handed out exactly once: the incremented value is persisted before the
current value is returned.
"""

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Optional

from django_pki.exceptions import StorageError
from django_pki.utils import atomic_write, file_lock, hex_to_int, int_to_hex, now

log = logging.getLogger(__name__)


class SequenceFile:
    """A monotonically increasing counter persisted in `path`."""

    def __init__(self, path: Path, authority: Optional[str] = None) -> None:
        self.path = path
        self.authority = authority
        self.lock_path = path.with_name(f"{path.name}.lock")

    def __repr__(self) -> str:
        return f"<SequenceFile: {self.path}>"

    def initialize(self, start: int) -> None:
        """Create the counter file with the given start value."""
        self._write(start)

    def _write(self, value: int) -> None:
        try:
            atomic_write(self.path, f"{int_to_hex(value)}\n".encode("ascii"))
        except OSError as ex:
            raise StorageError(
                f"Cannot write counter: {ex}", authority=self.authority, path=self.path
            ) from ex

    def read(self) -> int:
        """Read the current value without advancing it."""
        try:
            data = self.path.read_text(encoding="ascii")
        except OSError as ex:
            raise StorageError(f"Cannot read counter: {ex}", authority=self.authority, path=self.path) from ex

        try:
            return hex_to_int(data)
        except ValueError as ex:
            raise StorageError(
                f"Counter file is corrupt: {data!r}", authority=self.authority, path=self.path
            ) from ex

    def next(self) -> int:
        """Return the current value and persist the incremented value."""
        with file_lock(self.lock_path):
            value = self.read()
            self._write(value + 1)
        return value


class SerialAllocator:
    """Allocates certificate serials for one authority.

    A serial that was allocated but never made it into the index is recorded in the ``serial.skipped`` file
    together with the step that failed. It is never handed out again.
    """

    def __init__(self, path: Path, skipped_path: Path, authority: Optional[str] = None) -> None:
        self.authority = authority
        self.sequence = SequenceFile(path, authority=authority)
        self.skipped_path = skipped_path

    def initialize(self, start: int) -> None:
        """Seed the serial counter."""
        self.sequence.initialize(start)

    def next(self) -> int:
        """Allocate the next serial."""
        serial = self.sequence.next()
        log.debug("%s: Allocated serial %s.", self.authority, int_to_hex(serial))
        return serial

    def peek(self) -> int:
        """Get the serial that will be allocated next."""
        return self.sequence.read()

    def skip(self, serial: int, step: str) -> None:
        """Record that `serial` was allocated but not used because `step` failed."""
        log.warning(
            "%s: Serial %s skipped, issuance failed during %s.", self.authority, int_to_hex(serial), step
        )
        line = f"{int_to_hex(serial)}\t{now().strftime('%Y%m%d%H%M%SZ')}\t{step}\n"
        with file_lock(self.sequence.lock_path):
            with open(self.skipped_path, "a", encoding="utf-8") as stream:
                stream.write(line)

    def skipped(self) -> Iterator[tuple[int, str]]:
        """Iterate over all skipped serials and the step that failed."""
        if not self.skipped_path.exists():
            return

        with open(self.skipped_path, encoding="utf-8") as stream:
            for line in stream:
                if not line.strip():
                    continue
                serial, _timestamp, step = line.rstrip("\n").split("\t", 2)
                yield hex_to_int(serial), step

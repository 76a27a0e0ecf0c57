"""Append-only CSV record store.

The first row of the file is a schema header. Every following row is one
Record, in the order it was appended:

    timestamp,ping_host,avg_latency_ms,min_latency_ms,max_latency_ms,
    packet_loss_pct,download_speed_mbps,download_time_sec,status

Numeric fields without data are written as an empty field, so ``0`` always
means a measured zero. Numbers are written in positional notation, never
with an exponent. Logs written with the legacy header (a ``packet_loss_%``
column) used ``0`` for "no data" as well; those files are read with that
rule applied to the latency, speed and time columns, and are rewritten with
the current header before the first new row is appended.

Each append is a single ``write`` on an ``O_APPEND`` descriptor followed by
``fsync``: concurrent writers cannot interleave within a record and a
failed append never touches earlier rows. An empty log gets its header in
the same write as the first row.
"""

from __future__ import annotations

import csv
import io
import logging
import os
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional, Union

from nethealth.config import TIMESTAMP_FORMAT
from nethealth.models import Record, Sample, Status
from nethealth.parser import parse_measurement

logger = logging.getLogger(__name__)

HEADER = [
    "timestamp",
    "ping_host",
    "avg_latency_ms",
    "min_latency_ms",
    "max_latency_ms",
    "packet_loss_pct",
    "download_speed_mbps",
    "download_time_sec",
    "status",
]
LEGACY_HEADER = [
    "timestamp",
    "ping_host",
    "avg_latency_ms",
    "min_latency_ms",
    "max_latency_ms",
    "packet_loss_%",
    "download_speed_mbps",
    "download_time_sec",
    "status",
]

# Columns where a legacy "0" is a placeholder rather than a measurement
_LEGACY_ZERO_COLUMNS = (2, 3, 4, 6, 7)


class StoreError(Exception):
    """The record log could not be created, written or read."""


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    # repr() switches to exponent notation outside 1e-4..1e16
    return format(Decimal(repr(float(value))), "f")


def _clear_legacy_zeros(row: list[str]) -> list[str]:
    """Blank the placeholder zeros of a legacy-format row."""
    return [
        "" if index in _LEGACY_ZERO_COLUMNS and parse_measurement(field) == 0 else field
        for index, field in enumerate(row)
    ]


def _encode_row(fields: list[str]) -> bytes:
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(fields)
    return buffer.getvalue().encode("utf-8")


def record_to_row(record: Record) -> list[str]:
    """Serialize *record* into its CSV fields."""
    s = record.sample
    return [
        s.timestamp.strftime(TIMESTAMP_FORMAT),
        s.target_host,
        _format_number(s.avg_latency_ms),
        _format_number(s.min_latency_ms),
        _format_number(s.max_latency_ms),
        _format_number(s.packet_loss_pct),
        _format_number(s.download_speed_mbps),
        _format_number(s.download_time_sec),
        record.status.value,
    ]


def row_to_record(row: list[str], legacy: bool = False) -> Record:
    """Parse CSV fields into a Record.

    Raises ValueError if the row is not a well-formed record.
    """
    if len(row) != len(HEADER):
        raise ValueError(f"expected {len(HEADER)} fields, got {len(row)}")

    if legacy:
        row = _clear_legacy_zeros(row)

    avg, minimum, maximum, loss, speed, elapsed = (parse_measurement(field) for field in row[2:8])
    sample = Sample(
        timestamp=datetime.strptime(row[0], TIMESTAMP_FORMAT),
        target_host=row[1],
        avg_latency_ms=avg,
        min_latency_ms=minimum,
        max_latency_ms=maximum,
        packet_loss_pct=loss if loss is not None else 0.0,
        download_speed_mbps=speed,
        download_time_sec=elapsed,
    )
    return Record(sample=sample, status=Status(row[8].strip()))


class RecordStore:
    """Durable, ordered, append-only log of Records backed by a CSV file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"RecordStore({str(self.path)!r})"

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    def initialize(self) -> bool:
        """Create the log with its header row if it does not exist yet.

        Returns True if the file was created. An existing file is never
        modified.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"cannot create directory for {self.path}: {exc}") from exc

        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            return False
        except OSError as exc:
            raise StoreError(f"cannot create record log {self.path}: {exc}") from exc

        try:
            self._write_all(fd, _encode_row(HEADER))
            os.fsync(fd)
        except OSError as exc:
            raise StoreError(f"cannot write header to {self.path}: {exc}") from exc
        finally:
            os.close(fd)

        logger.info("Created new CSV log file: %s", self.path)
        return True

    def append(self, record: Record) -> None:
        """Durably append one record. Raises StoreError on any failure."""
        last = self.last_record()
        if last is not None and record.timestamp < last.timestamp:
            raise StoreError(
                f"record at {record.timestamp:{TIMESTAMP_FORMAT}} is older than "
                f"the last stored record ({last.timestamp:{TIMESTAMP_FORMAT}})"
            )

        self.initialize()
        if self._read_header() == LEGACY_HEADER:
            self._upgrade_legacy()
        payload = _encode_row(record_to_row(record))

        try:
            fd = os.open(self.path, os.O_RDWR | os.O_APPEND)
        except OSError as exc:
            raise StoreError(f"cannot open record log {self.path}: {exc}") from exc

        try:
            if os.fstat(fd).st_size == 0:
                # Header lost to a crash between create and header write
                logger.warning("Record log %s is empty; writing header", self.path)
                payload = _encode_row(HEADER) + payload
            elif not self._ends_with_newline(fd):
                # Terminate a row left unfinished by an interrupted write
                logger.warning("Record log %s ends mid-row; terminating it", self.path)
                payload = b"\n" + payload
            self._write_all(fd, payload)
            os.fsync(fd)
        except OSError as exc:
            raise StoreError(f"cannot append to record log {self.path}: {exc}") from exc
        finally:
            os.close(fd)

        logger.debug("Appended record: %s", record_to_row(record))

    def scan(self) -> Iterator[Record]:
        """Yield stored records in append order, reading the file afresh.

        A missing log yields nothing. Malformed rows are skipped.
        """
        try:
            f = open(self.path, newline="", encoding="utf-8")
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StoreError(f"cannot read record log {self.path}: {exc}") from exc

        with f:
            reader = csv.reader(f)
            header = next(reader, None)
            if header is None:
                return
            legacy = [h.strip() for h in header] == LEGACY_HEADER
            for row in reader:
                if not row:
                    continue
                try:
                    yield row_to_record(row, legacy=legacy)
                except ValueError as exc:
                    logger.warning(
                        "Skipping malformed row %d in %s: %s",
                        reader.line_num,
                        self.path,
                        exc,
                    )

    def last_record(self) -> Optional[Record]:
        """Return the most recently appended record, or None."""
        last = None
        for last in self.scan():
            pass
        return last

    def _read_header(self) -> Optional[list[str]]:
        try:
            with open(self.path, newline="", encoding="utf-8") as f:
                header = next(csv.reader(f), None)
        except OSError as exc:
            raise StoreError(f"cannot read record log {self.path}: {exc}") from exc
        return [h.strip() for h in header] if header else None

    def _upgrade_legacy(self) -> None:
        """Rewrite a legacy-header log in the current format.

        Placeholder zeros become empty fields, so rows appended afterwards
        keep their measured zeros. Rows are otherwise copied unchanged,
        malformed ones included.
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(self.path, newline="", encoding="utf-8") as src:
                with open(tmp_path, "w", newline="", encoding="utf-8") as dst:
                    reader = csv.reader(src)
                    next(reader, None)
                    writer = csv.writer(dst, lineterminator="\n")
                    writer.writerow(HEADER)
                    for row in reader:
                        if len(row) == len(HEADER):
                            row = _clear_legacy_zeros(row)
                        writer.writerow(row)
                    dst.flush()
                    os.fsync(dst.fileno())
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StoreError(f"cannot upgrade legacy record log {self.path}: {exc}") from exc
        logger.info("Upgraded legacy record log %s to the current header", self.path)

    @staticmethod
    def _ends_with_newline(fd: int) -> bool:
        size = os.fstat(fd).st_size
        if size == 0:
            return True
        return os.pread(fd, 1, size - 1) == b"\n"

    @staticmethod
    def _write_all(fd: int, payload: bytes) -> None:
        written = os.write(fd, payload)
        if written != len(payload):
            raise OSError(f"short write ({written} of {len(payload)} bytes)")

"""Day-partitioned JSON log of usage records."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from .models import UsageRecord

logger = logging.getLogger(__name__)

PARTITION_PREFIX = "usage-"
PARTITION_SUFFIX = ".json"
DATE_FMT = "%Y-%m-%d"

_PARTITION_PATTERN = re.compile(r"^usage-(\d{4}-\d{2}-\d{2})\.json$")

DateLike = Union[date, datetime]


class StorageError(RuntimeError):
    """Base class for usage store failures."""


class StorageWriteError(StorageError):
    """A partition could not be written; the record is lost."""


class StorageUnavailableError(StorageError):
    """The log directory or a partition cannot be read at all."""


class PartitionReadError(StorageError):
    """A partition exists but its contents cannot be parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Unreadable usage partition {path}: {reason}")
        self.path = path


class UsageStore:
    """Owns the ``usage-YYYY-MM-DD.json`` files inside one flat directory.

    Partition keys are calendar dates in the local timezone of the writing
    process. Writes replace the whole partition through a temporary file and
    an atomic rename, so readers never observe a half-written file. There is
    no locking: a single tracker is expected to write at a time.

    With ``strict=False`` (the default) a corrupt partition reads as an empty
    day and a warning is logged; ``strict=True`` raises
    :class:`PartitionReadError` instead.
    """

    def __init__(
        self,
        log_dir: Path,
        *,
        strict: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.log_dir = Path(log_dir)
        self.strict = strict
        self._clock = clock

    def partition_path(self, day: DateLike) -> Path:
        return self.log_dir / f"{PARTITION_PREFIX}{_as_date(day).strftime(DATE_FMT)}{PARTITION_SUFFIX}"

    def append(self, record: UsageRecord) -> Optional[UsageRecord]:
        """Stamp ``record`` with the current time and persist it.

        Returns the stamped record, or ``None`` for zero-length intervals,
        which are never written.
        """
        if record.duration <= 0:
            logger.debug("Skipping zero-length interval for %s", record.app)
            return None

        stamped = replace(record, timestamp=self._clock())
        path = self.partition_path(stamped.timestamp)
        try:
            records = self._read_partition(path, strict=True)
        except PartitionReadError as exc:
            logger.warning("%s; moving it aside before writing.", exc)
            records = []
            self._quarantine(path)
        except StorageUnavailableError as exc:
            raise StorageWriteError(str(exc)) from exc
        records.append(stamped)
        try:
            self._write_partition(path, records)
        except OSError as exc:
            raise StorageWriteError(f"Failed to write {path}: {exc}") from exc
        logger.debug(
            "Appended %s (%d ms) to %s", stamped.app, stamped.duration, path.name
        )
        return stamped

    def load_day(self, day: DateLike) -> list[UsageRecord]:
        return self._read_partition(self.partition_path(day))

    def list_partitions(self) -> list[tuple[date, Path]]:
        """Return every stored partition, oldest first."""
        return sorted(self._iter_partitions(), key=lambda item: item[0])

    def load_range(self, start: DateLike, end: DateLike) -> list[UsageRecord]:
        """Load all records from partitions dated within ``[start, end]``."""
        first, last = _as_date(start), _as_date(end)
        records: list[UsageRecord] = []
        for day, path in self.list_partitions():
            if first <= day <= last:
                records.extend(self._read_partition(path))
        return records

    def _iter_partitions(self) -> Iterator[tuple[date, Path]]:
        try:
            entries = list(self.log_dir.iterdir())
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageUnavailableError(
                f"Cannot list usage directory {self.log_dir}: {exc}"
            ) from exc

        for entry in entries:
            match = _PARTITION_PATTERN.match(entry.name)
            if not match:
                continue
            try:
                day = datetime.strptime(match.group(1), DATE_FMT).date()
            except ValueError:
                logger.debug("Ignoring partition with invalid date: %s", entry.name)
                continue
            yield day, entry

    def _read_partition(
        self, path: Path, strict: Optional[bool] = None
    ) -> list[UsageRecord]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot read {path}: {exc}") from exc

        strict = self.strict if strict is None else strict
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            return self._corrupt(path, str(exc), strict)
        if not isinstance(payload, list):
            return self._corrupt(path, "expected a JSON array", strict)

        return [UsageRecord.from_dict(item) for item in payload if isinstance(item, dict)]

    @staticmethod
    def _corrupt(path: Path, reason: str, strict: bool) -> list[UsageRecord]:
        if strict:
            raise PartitionReadError(path, reason)
        logger.warning("Ignoring unreadable usage partition %s: %s", path, reason)
        return []

    def _quarantine(self, path: Path) -> None:
        target = path.with_name(
            f"{path.name}.corrupt-{self._clock().strftime('%H%M%S')}"
        )
        try:
            os.replace(path, target)
        except OSError as exc:
            raise StorageWriteError(f"Failed to move aside {path}: {exc}") from exc

    def _write_partition(self, path: Path, records: list[UsageRecord]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.stem}-", suffix=".tmp", dir=path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump([record.to_dict() for record in records], handle, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value

from __future__ import annotations

import csv
import io
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from gtfs_feed_etl.core import InputDataError

REPLACEMENT_CHAR = "\ufffd"


@dataclass(frozen=True, slots=True)
class TableEntry:
    info: zipfile.ZipInfo
    in_subdirectory: bool

    @property
    def file_size(self) -> int:
        return int(self.info.file_size)


class FeedSource:
    """
    Read access to the tables inside one feed archive.

    A table file may sit at the archive root or one directory deep.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        try:
            self._zip = zipfile.ZipFile(path)
        except (zipfile.BadZipFile, OSError) as e:
            raise InputDataError(f"cannot open feed archive {path}: {e}") from e

    def __enter__(self) -> "FeedSource":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def locate(self, file_name: str) -> Optional[TableEntry]:
        nested: Optional[zipfile.ZipInfo] = None
        for info in self._zip.infolist():
            if info.is_dir():
                continue
            parts = info.filename.split("/")
            if parts[0] == "__MACOSX":
                continue
            if len(parts) == 1 and parts[0] == file_name:
                return TableEntry(info, False)
            if len(parts) == 2 and parts[1] == file_name and nested is None:
                nested = info
        if nested is not None:
            return TableEntry(nested, True)
        return None

    def rows(self, entry: TableEntry) -> Iterator[list[str]]:
        """
        Yield CSV records, header first. A UTF-8 byte order mark is dropped and
        bytes that are not valid UTF-8 become U+FFFD.
        """
        with self._zip.open(entry.info) as raw:
            text = io.TextIOWrapper(raw, encoding="utf-8-sig", errors="replace", newline="")
            yield from csv.reader(text)

    def read_table(self, file_name: str) -> list[dict[str, str]]:
        """Whole small table as dicts, for metadata such as feed_info."""
        entry = self.locate(file_name)
        if entry is None:
            return []
        it = self.rows(entry)
        header = next(it, None)
        if not header:
            return []
        return [dict(zip(header, r)) for r in it if r]

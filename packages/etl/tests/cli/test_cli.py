from __future__ import annotations

import sqlite3
import zipfile
from pathlib import Path

from gtfs_feed_etl.cli import main
from gtfs_feed_etl.storage import list_feeds


def _feeds(database: Path) -> list[str]:
    c = sqlite3.connect(database)
    try:
        return [f.namespace for f in list_feeds(c)]
    finally:
        c.close()


def test_run_export_delete(make_feed, tmp_path: Path) -> None:
    database = tmp_path / "cli.sqlite"
    feed = make_feed()

    assert main(["--database", str(database), "run", str(feed)]) == 0
    (namespace,) = _feeds(database)

    assert main(["--database", str(database), "feeds"]) == 0
    assert main(["--database", str(database), "validate", namespace]) == 0

    out = tmp_path / "out.zip"
    assert main(["--database", str(database), "export", namespace, str(out)]) == 0
    with zipfile.ZipFile(out) as zf:
        assert "stop_times.txt" in zf.namelist()

    assert main(["--database", str(database), "delete", namespace]) == 0
    assert _feeds(database) == []


def test_unknown_namespace(tmp_path: Path) -> None:
    database = tmp_path / "cli.sqlite"
    assert main(["--database", str(database), "validate", "nosuchnamespace"]) == 1
    assert main(["--database", str(database), "delete", "nosuchnamespace"]) == 1


def test_unreadable_feed_fails(tmp_path: Path) -> None:
    bogus = tmp_path / "bogus.zip"
    bogus.write_text("nope")
    assert main(["--database", str(tmp_path / "cli.sqlite"), "load", str(bogus)]) == 1

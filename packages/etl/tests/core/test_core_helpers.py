from __future__ import annotations

import re
from pathlib import Path

import pytest
from gtfs_feed_etl.core import (
    FatalError,
    Settings,
    Timer,
    digest_file,
    fatal_error_from_exc,
    format_duration_ms,
    human_count,
    new_namespace_id,
)
from gtfs_feed_etl.core import fs


def test_digest_file_md5_sha1(tmp_path: Path) -> None:
    f = tmp_path / "feed.zip"
    f.write_bytes(b"abc")
    digest = digest_file(f)
    assert digest.md5 == "900150983cd24fb0d6963f7d28e17f72"
    assert digest.sha1 == "a9993e364706816aba3e25717850c26c9cd0d89d"
    assert digest.bytes == 3


def test_namespace_ids_are_lowercase_letters() -> None:
    ids = {new_namespace_id() for _ in range(50)}
    assert len(ids) == 50
    for ns in ids:
        assert re.fullmatch(r"[a-z]{22}", ns)


def test_timer_and_formatting() -> None:
    with Timer() as t:
        pass
    assert t.duration_ms is not None and t.duration_ms >= 0
    assert format_duration_ms(250) == "250 ms"
    assert format_duration_ms(1500) == "1.50 s"
    assert human_count(999) == "999"
    assert human_count(12_345) == "12k"
    assert human_count(2_500_000) == "2.5M"


def test_fatal_error_string() -> None:
    try:
        raise ValueError("bad row")
    except ValueError as e:
        fatal = fatal_error_from_exc(e)
    assert isinstance(fatal, FatalError)
    assert str(fatal) == "ValueError: bad row"
    assert "ValueError" in fatal.traceback


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GTFS_FEED_ETL_DATABASE", str(tmp_path / "x.sqlite"))
    monkeypatch.setenv("GTFS_FEED_ETL_LOG_SQL", "true")
    monkeypatch.setenv("GTFS_FEED_ETL_LOG_FORMAT", "json")
    s = Settings()
    assert s.database == tmp_path / "x.sqlite"
    assert s.log_sql is True
    assert s.log_format == "json"
    assert s.log_level == "INFO"


def test_atomic_replace(tmp_path: Path) -> None:
    final = tmp_path / "out" / "feed.zip"
    tmp = fs.make_tmp_path_for(final)
    assert tmp.parent == final.parent and tmp.exists()
    tmp.write_bytes(b"data")
    fs.atomic_replace(tmp, final)
    assert final.read_bytes() == b"data"
    assert not tmp.exists()
    fs.safe_unlink(final)
    fs.safe_unlink(final)
    assert not final.exists()

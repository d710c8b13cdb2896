from __future__ import annotations

from gtfs_feed_etl.issues import ErrorType
from gtfs_feed_etl.loader import ReferenceTracker
from gtfs_feed_etl.schema import table_by_name


def _check(tracker: ReferenceTracker, table_name: str, field_name: str, key: str, value: str, line: int = 2):
    table = table_by_name(table_name)
    return tracker.check_references_and_uniqueness(key, line, table.field_for_name(field_name), value, table)


def test_duplicate_primary_key() -> None:
    tracker = ReferenceTracker()
    assert _check(tracker, "stops", "stop_id", "S1", "S1", 2) == []
    issues = _check(tracker, "stops", "stop_id", "S1", "S1", 3)
    assert [(i.error_type, i.line_number, i.bad_value) for i in issues] == [
        (ErrorType.DUPLICATE_ID, 3, "stop_id:S1")
    ]


def test_sequenced_uniqueness_is_per_parent() -> None:
    tracker = ReferenceTracker()
    assert _check(tracker, "stop_times", "stop_sequence", "T1", "1") == []
    assert _check(tracker, "stop_times", "stop_sequence", "T2", "1") == []
    issues = _check(tracker, "stop_times", "stop_sequence", "T1", "1", 9)
    assert len(issues) == 1
    assert issues[0].error_type == ErrorType.DUPLICATE_ID
    assert issues[0].entity_sequence == 1
    assert issues[0].bad_value == "stop_sequence:T1:1"


def test_unresolved_reference() -> None:
    tracker = ReferenceTracker()
    _check(tracker, "routes", "route_id", "R1", "R1")
    assert _check(tracker, "trips", "route_id", "T1", "R1") == []
    issues = _check(tracker, "trips", "route_id", "T2", "R9", 3)
    assert [(i.error_type, i.entity_id, i.bad_value) for i in issues] == [
        (ErrorType.REFERENTIAL_INTEGRITY, "T2", "route_id:R9")
    ]


def test_empty_optional_reference_is_skipped() -> None:
    tracker = ReferenceTracker()
    assert _check(tracker, "trips", "shape_id", "T1", "") == []


def test_calendar_dates_service_becomes_referenceable() -> None:
    tracker = ReferenceTracker()
    # The reference check fails (no calendar), but the service id is still recorded.
    issues = _check(tracker, "calendar_dates", "service_id", "HOL", "HOL")
    assert [i.error_type for i in issues] == [ErrorType.REFERENTIAL_INTEGRITY]
    assert _check(tracker, "trips", "service_id", "T1", "HOL") == []


def test_restore_forgets_keys_since_checkpoint() -> None:
    tracker = ReferenceTracker()
    tracker.checkpoint()
    _check(tracker, "routes", "route_id", "R1", "R1")
    tracker.checkpoint()
    _check(tracker, "trips", "trip_id", "T1", "T1")
    _check(tracker, "stop_times", "stop_sequence", "T1", "1")
    tracker.restore()

    assert "route_id:R1" in tracker.seen_keys
    assert "trip_id:T1" not in tracker.seen_keys
    assert tracker.seen_sequenced_keys == set()
    issues = _check(tracker, "stop_times", "trip_id", "T1", "T1")
    assert [i.error_type for i in issues] == [ErrorType.REFERENTIAL_INTEGRITY]


def test_restore_keeps_keys_seen_before_checkpoint() -> None:
    tracker = ReferenceTracker()
    _check(tracker, "stops", "stop_id", "S1", "S1")
    tracker.checkpoint()
    # A duplicate registers nothing new, so undoing it must not drop S1.
    _check(tracker, "stops", "stop_id", "S1", "S1", 3)
    tracker.restore()
    assert "stop_id:S1" in tracker.seen_keys


def test_agency_key_values_follow_rows() -> None:
    tracker = ReferenceTracker()
    tracker.record_row("agency", "A1")
    tracker.record_row("agency", None)
    tracker.record_row("routes", "R1")
    assert tracker.key_values("agency") == ["A1", ""]
    assert tracker.key_values("routes") == []

    tracker.checkpoint()
    tracker.record_row("agency", "A3")
    tracker.restore()
    assert tracker.key_values("agency") == ["A1", ""]

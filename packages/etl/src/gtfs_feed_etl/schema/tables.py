"""
The GTFS table registry.

Tables are declared in load order: every table comes after every table its
fields reference, so reference checks never run ahead of their targets.
"""

from __future__ import annotations

from .conditions import (
    AgencyHasMultipleRows,
    FieldInRange,
    FieldIsEmpty,
    FieldNotEmptyAndMatchesValue,
    ReferenceFieldShouldBeProvided,
)
from .fields import Field
from .fields import FieldKind as K
from .fields import Requirement as R
from .table import Table

INT_MAX = 2**31 - 1

AGENCY = Table(
    "agency",
    R.REQUIRED,
    (
        Field("agency_id", R.OPTIONAL, conditions=(AgencyHasMultipleRows(),)),
        Field("agency_name", R.REQUIRED),
        Field("agency_url", R.REQUIRED, K.URL),
        Field("agency_timezone", R.REQUIRED),
        Field("agency_lang", R.OPTIONAL, K.LANGUAGE),
        Field("agency_phone", R.OPTIONAL),
        Field("agency_branding_url", R.OPTIONAL, K.URL),
        Field("agency_fare_url", R.OPTIONAL, K.URL),
        Field("agency_email", R.OPTIONAL),
    ),
    primary_key=True,
    cascade_delete_restricted=True,
)

CALENDAR = Table(
    "calendar",
    R.OPTIONAL,
    (
        Field("service_id", R.REQUIRED),
        Field("monday", R.REQUIRED, K.INTEGER, 0, 1),
        Field("tuesday", R.REQUIRED, K.INTEGER, 0, 1),
        Field("wednesday", R.REQUIRED, K.INTEGER, 0, 1),
        Field("thursday", R.REQUIRED, K.INTEGER, 0, 1),
        Field("friday", R.REQUIRED, K.INTEGER, 0, 1),
        Field("saturday", R.REQUIRED, K.INTEGER, 0, 1),
        Field("sunday", R.REQUIRED, K.INTEGER, 0, 1),
        Field("start_date", R.REQUIRED, K.DATE),
        Field("end_date", R.REQUIRED, K.DATE),
        Field("description", R.EDITOR),
    ),
    primary_key=True,
    cascade_delete_restricted=True,
)

CALENDAR_DATES = Table(
    "calendar_dates",
    R.OPTIONAL,
    (
        Field("service_id", R.REQUIRED, references=("calendar",)),
        Field("date", R.REQUIRED, K.DATE),
        Field("exception_type", R.REQUIRED, K.INTEGER, 1, 2),
    ),
    has_unique_key_field=False,
)

FARE_ATTRIBUTES = Table(
    "fare_attributes",
    R.OPTIONAL,
    (
        Field("fare_id", R.REQUIRED),
        Field("price", R.REQUIRED, K.DOUBLE, 0.0, None, output_precision=2),
        Field("currency_type", R.REQUIRED, K.CURRENCY),
        Field("payment_method", R.REQUIRED, K.SHORT, max_value=1),
        Field("transfers", R.REQUIRED, K.SHORT, max_value=2, empty_value_permitted=True),
        Field(
            "agency_id",
            R.OPTIONAL,
            references=("agency",),
            conditions=(ReferenceFieldShouldBeProvided("agency"),),
        ),
        Field("transfer_duration", R.OPTIONAL, K.INTEGER),
    ),
    primary_key=True,
)

FEED_INFO = Table(
    "feed_info",
    R.OPTIONAL,
    (
        Field("feed_publisher_name", R.REQUIRED),
        Field("feed_id", R.OPTIONAL),
        Field("feed_publisher_url", R.REQUIRED, K.URL),
        Field("feed_lang", R.REQUIRED, K.LANGUAGE),
        Field("feed_start_date", R.OPTIONAL, K.DATE),
        Field("feed_end_date", R.OPTIONAL, K.DATE),
        Field("feed_version", R.OPTIONAL),
        Field("default_lang", R.OPTIONAL, K.LANGUAGE),
        Field("feed_contact_email", R.OPTIONAL),
        Field("feed_contact_url", R.OPTIONAL, K.URL),
    ),
    has_unique_key_field=False,
)

ROUTES = Table(
    "routes",
    R.REQUIRED,
    (
        Field("route_id", R.REQUIRED),
        Field(
            "agency_id",
            R.OPTIONAL,
            references=("agency",),
            conditions=(ReferenceFieldShouldBeProvided("agency"),),
        ),
        Field("route_short_name", R.OPTIONAL),
        Field("route_long_name", R.OPTIONAL),
        Field("route_desc", R.OPTIONAL),
        Field("route_type", R.REQUIRED, K.INTEGER, 0, 1800),
        Field("route_url", R.OPTIONAL, K.URL),
        Field("route_branding_url", R.OPTIONAL, K.URL),
        Field("route_color", R.OPTIONAL, K.COLOR),
        Field("route_text_color", R.OPTIONAL, K.COLOR),
        Field("route_sort_order", R.OPTIONAL, K.INTEGER, 0, INT_MAX),
        Field("continuous_pickup", R.OPTIONAL, K.SHORT, max_value=3),
        Field("continuous_drop_off", R.OPTIONAL, K.SHORT, max_value=3),
    ),
    primary_key=True,
)

SHAPES = Table(
    "shapes",
    R.OPTIONAL,
    (
        Field("shape_id", R.REQUIRED),
        Field("shape_pt_sequence", R.REQUIRED, K.INTEGER, 0, INT_MAX),
        Field("shape_pt_lat", R.REQUIRED, K.DOUBLE, -80, 80, output_precision=6),
        Field("shape_pt_lon", R.REQUIRED, K.DOUBLE, -180, 180, output_precision=6),
        Field("shape_dist_traveled", R.OPTIONAL, K.DOUBLE, 0, None),
    ),
)

STOPS = Table(
    "stops",
    R.REQUIRED,
    (
        Field("stop_id", R.REQUIRED),
        Field("stop_code", R.OPTIONAL),
        Field("stop_name", R.OPTIONAL),
        Field("tts_stop_name", R.OPTIONAL),
        Field("stop_desc", R.OPTIONAL),
        Field("stop_lat", R.OPTIONAL, K.DOUBLE, -80, 80, output_precision=6),
        Field("stop_lon", R.OPTIONAL, K.DOUBLE, -180, 180, output_precision=6),
        Field("zone_id", R.OPTIONAL),
        Field("stop_url", R.OPTIONAL, K.URL),
        Field(
            "location_type",
            R.OPTIONAL,
            K.SHORT,
            max_value=4,
            conditions=(
                FieldInRange(0, 2, "stop_name"),
                FieldInRange(0, 2, "stop_lat"),
                FieldInRange(0, 2, "stop_lon"),
                FieldInRange(2, 4, "parent_station"),
            ),
        ),
        Field("parent_station", R.OPTIONAL),
        Field("stop_timezone", R.OPTIONAL),
        Field("wheelchair_boarding", R.OPTIONAL, K.SHORT, max_value=2),
        Field("level_id", R.OPTIONAL),
        Field("platform_code", R.OPTIONAL),
    ),
    primary_key=True,
    cascade_delete_restricted=True,
)

FARE_RULES = Table(
    "fare_rules",
    R.OPTIONAL,
    (
        Field("fare_id", R.REQUIRED, references=("fare_attributes",)),
        Field("route_id", R.OPTIONAL, references=("routes",)),
        Field("origin_id", R.OPTIONAL),
        Field("destination_id", R.OPTIONAL),
        Field("contains_id", R.OPTIONAL),
    ),
    has_unique_key_field=False,
    primary_key=True,
    parent_table="fare_attributes",
)

TRANSFERS = Table(
    "transfers",
    R.OPTIONAL,
    (
        Field("from_stop_id", R.REQUIRED, references=("stops",)),
        Field("to_stop_id", R.REQUIRED, references=("stops",)),
        Field("transfer_type", R.REQUIRED, K.SHORT, max_value=3),
        Field("min_transfer_time", R.OPTIONAL, K.INTEGER, 0, INT_MAX),
    ),
    has_unique_key_field=False,
    compound_key=True,
    primary_key=True,
)

TRIPS = Table(
    "trips",
    R.REQUIRED,
    (
        Field("trip_id", R.REQUIRED),
        Field("route_id", R.REQUIRED, references=("routes",), index=True),
        Field("service_id", R.REQUIRED, references=("calendar",)),
        Field("trip_headsign", R.OPTIONAL),
        Field("trip_short_name", R.OPTIONAL),
        Field("direction_id", R.OPTIONAL, K.SHORT, max_value=1),
        Field("block_id", R.OPTIONAL),
        Field("shape_id", R.OPTIONAL, references=("shapes",)),
        Field("wheelchair_accessible", R.OPTIONAL, K.SHORT, max_value=2),
        Field("bikes_allowed", R.OPTIONAL, K.SHORT, max_value=2),
        Field("pattern_id", R.EDITOR, index=True),
    ),
    primary_key=True,
)

STOP_TIMES = Table(
    "stop_times",
    R.REQUIRED,
    (
        Field("trip_id", R.REQUIRED, references=("trips",)),
        Field("stop_sequence", R.REQUIRED, K.INTEGER, 0, INT_MAX),
        Field("stop_id", R.REQUIRED, references=("stops",)),
        Field("arrival_time", R.OPTIONAL, K.TIME),
        Field("departure_time", R.OPTIONAL, K.TIME),
        Field("stop_headsign", R.OPTIONAL),
        Field("pickup_type", R.OPTIONAL, K.SHORT, max_value=3),
        Field("drop_off_type", R.OPTIONAL, K.SHORT, max_value=3),
        Field("continuous_pickup", R.OPTIONAL, K.SHORT, max_value=3),
        Field("continuous_drop_off", R.OPTIONAL, K.SHORT, max_value=3),
        Field("shape_dist_traveled", R.OPTIONAL, K.DOUBLE, 0, None),
        Field("timepoint", R.OPTIONAL, K.SHORT, max_value=1),
        Field("fare_units_traveled", R.EXTENSION, K.INTEGER),
        Field("pickup_booking_rule_id", R.OPTIONAL),
        Field("drop_off_booking_rule_id", R.OPTIONAL),
        Field("start_pickup_drop_off_window", R.OPTIONAL, K.TIME),
        Field("end_pickup_drop_off_window", R.OPTIONAL, K.TIME),
    ),
    parent_table="trips",
)

FREQUENCIES = Table(
    "frequencies",
    R.OPTIONAL,
    (
        Field("trip_id", R.REQUIRED, references=("trips",)),
        Field("start_time", R.REQUIRED, K.TIME),
        Field("end_time", R.REQUIRED, K.TIME),
        Field("headway_secs", R.REQUIRED, K.INTEGER, 20, 60 * 60 * 6),
        Field("exact_times", R.OPTIONAL, K.INTEGER, 0, 1),
    ),
    has_unique_key_field=False,
    parent_table="trips",
)

TRANSLATIONS = Table(
    "translations",
    R.OPTIONAL,
    (
        Field("table_name", R.REQUIRED),
        Field("field_name", R.REQUIRED),
        Field("language", R.REQUIRED, K.LANGUAGE),
        Field("translation", R.REQUIRED),
        Field("record_id", R.OPTIONAL, conditions=(FieldIsEmpty("field_value"),)),
        Field(
            "record_sub_id",
            R.OPTIONAL,
            conditions=(FieldNotEmptyAndMatchesValue("table_name", "stop_times"),),
        ),
        Field("field_value", R.OPTIONAL, conditions=(FieldIsEmpty("record_id"),)),
    ),
    has_unique_key_field=False,
)

ATTRIBUTIONS = Table(
    "attributions",
    R.OPTIONAL,
    (
        Field("attribution_id", R.OPTIONAL),
        Field("agency_id", R.OPTIONAL, references=("agency",)),
        Field("route_id", R.OPTIONAL, references=("routes",)),
        Field("trip_id", R.OPTIONAL, references=("trips",)),
        Field("organization_name", R.REQUIRED),
        Field("is_producer", R.OPTIONAL, K.SHORT, max_value=1),
        Field("is_operator", R.OPTIONAL, K.SHORT, max_value=1),
        Field("is_authority", R.OPTIONAL, K.SHORT, max_value=1),
        Field("attribution_url", R.OPTIONAL, K.URL),
        Field("attribution_email", R.OPTIONAL),
        Field("attribution_phone", R.OPTIONAL),
    ),
)

# Derived by the pattern builder, never loaded from the archive.

PATTERNS = Table(
    "patterns",
    R.OPTIONAL,
    (
        Field("pattern_id", R.REQUIRED),
        Field("route_id", R.REQUIRED, references=("routes",)),
        Field("name", R.OPTIONAL),
        Field("direction_id", R.EDITOR, K.SHORT, max_value=1),
        Field("shape_id", R.EDITOR, references=("shapes",)),
    ),
    primary_key=True,
)

PATTERN_STOPS = Table(
    "pattern_stops",
    R.OPTIONAL,
    (
        Field("pattern_id", R.REQUIRED, references=("patterns",)),
        Field("stop_sequence", R.REQUIRED, K.INTEGER, 0, INT_MAX),
        Field("stop_id", R.REQUIRED, references=("stops",)),
        Field("default_travel_time", R.EDITOR, K.INTEGER, 0, INT_MAX),
        Field("default_dwell_time", R.EDITOR, K.INTEGER, 0, INT_MAX),
        Field("drop_off_type", R.EDITOR, K.SHORT, max_value=3),
        Field("pickup_type", R.EDITOR, K.SHORT, max_value=3),
        Field("shape_dist_traveled", R.EDITOR, K.DOUBLE, 0, None),
        Field("timepoint", R.EDITOR, K.SHORT, max_value=1),
    ),
    parent_table="patterns",
)

LOAD_ORDER: tuple[Table, ...] = (
    AGENCY,
    CALENDAR,
    CALENDAR_DATES,
    FARE_ATTRIBUTES,
    FEED_INFO,
    ROUTES,
    SHAPES,
    STOPS,
    FARE_RULES,
    TRANSFERS,
    TRIPS,
    STOP_TIMES,
    FREQUENCIES,
    TRANSLATIONS,
    ATTRIBUTIONS,
)

DERIVED: tuple[Table, ...] = (PATTERNS, PATTERN_STOPS)

TABLES_BY_NAME: dict[str, Table] = {t.name: t for t in LOAD_ORDER + DERIVED}


def table_by_name(name: str) -> Table:
    try:
        return TABLES_BY_NAME[name]
    except KeyError:
        raise KeyError(f"unknown GTFS table '{name}'") from None

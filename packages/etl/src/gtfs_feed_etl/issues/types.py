from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional


class Priority(StrEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"


class ErrorType(StrEnum):
    # structural
    MISSING_TABLE = "MISSING_TABLE"
    TABLE_IN_SUBDIRECTORY = "TABLE_IN_SUBDIRECTORY"
    TABLE_MISSING_COLUMN_HEADERS = "TABLE_MISSING_COLUMN_HEADERS"
    COLUMN_NAME_UNSAFE = "COLUMN_NAME_UNSAFE"
    DUPLICATE_HEADER = "DUPLICATE_HEADER"
    MISSING_COLUMN = "MISSING_COLUMN"
    WRONG_NUMBER_OF_FIELDS = "WRONG_NUMBER_OF_FIELDS"
    REQUIRED_TABLE_EMPTY = "REQUIRED_TABLE_EMPTY"

    # field level
    MISSING_FIELD = "MISSING_FIELD"
    ILLEGAL_FIELD_VALUE = "ILLEGAL_FIELD_VALUE"
    NUMBER_PARSING = "NUMBER_PARSING"
    NUMBER_NEGATIVE = "NUMBER_NEGATIVE"
    NUMBER_TOO_SMALL = "NUMBER_TOO_SMALL"
    NUMBER_TOO_LARGE = "NUMBER_TOO_LARGE"
    DATE_FORMAT = "DATE_FORMAT"
    DATE_RANGE = "DATE_RANGE"
    TIME_FORMAT = "TIME_FORMAT"
    COLOR_FORMAT = "COLOR_FORMAT"
    URL_FORMAT = "URL_FORMAT"
    CURRENCY_UNKNOWN = "CURRENCY_UNKNOWN"
    LANGUAGE_FORMAT = "LANGUAGE_FORMAT"
    CONDITIONALLY_REQUIRED = "CONDITIONALLY_REQUIRED"
    AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS = "AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS"

    # integrity
    DUPLICATE_ID = "DUPLICATE_ID"
    REFERENTIAL_INTEGRITY = "REFERENTIAL_INTEGRITY"

    # trips and stop times
    TRIP_TOO_FEW_STOP_TIMES = "TRIP_TOO_FEW_STOP_TIMES"
    TRAVEL_TOO_SLOW = "TRAVEL_TOO_SLOW"
    TRAVEL_TOO_FAST = "TRAVEL_TOO_FAST"
    TRAVEL_DISTANCE_ZERO = "TRAVEL_DISTANCE_ZERO"
    TRAVEL_TIME_NEGATIVE = "TRAVEL_TIME_NEGATIVE"
    TRAVEL_TIME_ZERO = "TRAVEL_TIME_ZERO"
    FEED_TRAVEL_TIMES_ROUNDED = "FEED_TRAVEL_TIMES_ROUNDED"
    DEPARTURE_BEFORE_ARRIVAL = "DEPARTURE_BEFORE_ARRIVAL"
    STOP_TIME_UNUSED = "STOP_TIME_UNUSED"
    TIMEPOINT_MISSING_TIMES = "TIMEPOINT_MISSING_TIMES"
    SHAPE_DIST_TRAVELED_NOT_INCREASING = "SHAPE_DIST_TRAVELED_NOT_INCREASING"
    TRIP_OVERLAP_IN_BLOCK = "TRIP_OVERLAP_IN_BLOCK"
    TRIP_NEVER_ACTIVE = "TRIP_NEVER_ACTIVE"
    TRIP_EMPTY = "TRIP_EMPTY"
    MULTIPLE_SHAPES_FOR_PATTERN = "MULTIPLE_SHAPES_FOR_PATTERN"

    # feed level
    STOP_UNUSED = "STOP_UNUSED"
    STOP_GEOGRAPHIC_OUTLIER = "STOP_GEOGRAPHIC_OUTLIER"
    ROUTE_UNUSED = "ROUTE_UNUSED"
    ROUTE_SHORT_AND_LONG_NAME_MISSING = "ROUTE_SHORT_AND_LONG_NAME_MISSING"
    ROUTE_SHORT_NAME_TOO_LONG = "ROUTE_SHORT_NAME_TOO_LONG"
    ROUTE_LONG_NAME_CONTAINS_SHORT_NAME = "ROUTE_LONG_NAME_CONTAINS_SHORT_NAME"
    ROUTE_DESCRIPTION_SAME_AS_NAME = "ROUTE_DESCRIPTION_SAME_AS_NAME"
    ROUTE_TYPE_INVALID = "ROUTE_TYPE_INVALID"
    TIME_ZONE_FORMAT = "TIME_ZONE_FORMAT"
    FARE_TRANSFER_MISMATCH = "FARE_TRANSFER_MISMATCH"
    FREQUENCY_PERIOD_OVERLAP = "FREQUENCY_PERIOD_OVERLAP"
    SERVICE_WITHOUT_DAYS_OF_WEEK = "SERVICE_WITHOUT_DAYS_OF_WEEK"
    SERVICE_NEVER_ACTIVE = "SERVICE_NEVER_ACTIVE"
    SERVICE_UNUSED = "SERVICE_UNUSED"
    NO_SERVICE = "NO_SERVICE"
    DATE_NO_SERVICE = "DATE_NO_SERVICE"
    VALIDATOR_FAILED = "VALIDATOR_FAILED"

    @property
    def priority(self) -> Priority:
        return _INFO[self][0]

    @property
    def message(self) -> str:
        return _INFO[self][1]


_H, _M, _L = Priority.HIGH, Priority.MEDIUM, Priority.LOW

_INFO: dict[ErrorType, tuple[Priority, str]] = {
    ErrorType.MISSING_TABLE: (_H, "This table is required by the GTFS specification but is missing."),
    ErrorType.TABLE_IN_SUBDIRECTORY: (_H, "Rather than being at the root of the zip file, a table was nested in a subdirectory."),
    ErrorType.TABLE_MISSING_COLUMN_HEADERS: (_H, "Table is missing column headers."),
    ErrorType.COLUMN_NAME_UNSAFE: (_H, "Column header contains characters not safe in SQL, it was renamed."),
    ErrorType.DUPLICATE_HEADER: (_M, "More than one column in a table has the same name in the header row."),
    ErrorType.MISSING_COLUMN: (_M, "A required column was missing from a table."),
    ErrorType.WRONG_NUMBER_OF_FIELDS: (_M, "A row did not have the same number of fields as there are headers in its table."),
    ErrorType.REQUIRED_TABLE_EMPTY: (_H, "This table is required by the GTFS specification but is empty."),
    ErrorType.MISSING_FIELD: (_M, "A required field was missing or empty in a particular row."),
    ErrorType.ILLEGAL_FIELD_VALUE: (_L, "Fields may not contain tabs, carriage returns, new lines or bytes that are not valid UTF-8."),
    ErrorType.NUMBER_PARSING: (_M, "Unable to parse number from value."),
    ErrorType.NUMBER_NEGATIVE: (_M, "Number was expected to be non-negative."),
    ErrorType.NUMBER_TOO_SMALL: (_M, "Number was below the allowed range."),
    ErrorType.NUMBER_TOO_LARGE: (_M, "Number was above the allowed range."),
    ErrorType.DATE_FORMAT: (_M, "Date format should be YYYYMMDD."),
    ErrorType.DATE_RANGE: (_M, "Date should be between the year 2000 and 2100."),
    ErrorType.TIME_FORMAT: (_M, "Time format should be HH:MM:SS."),
    ErrorType.COLOR_FORMAT: (_L, "A color should be specified with six hexadecimal characters."),
    ErrorType.URL_FORMAT: (_L, "URL format should be <scheme>://<authority><path>?<query>#<fragment>."),
    ErrorType.CURRENCY_UNKNOWN: (_M, "The currency code was not recognized."),
    ErrorType.LANGUAGE_FORMAT: (_L, "Language should be specified with a valid BCP47 tag."),
    ErrorType.CONDITIONALLY_REQUIRED: (_M, "A conditionally required field was missing in a particular row."),
    ErrorType.AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS: (_H, "For GTFS feeds with more than one agency, agency_id is required."),
    ErrorType.DUPLICATE_ID: (_H, "More than one entity in a table has the same ID."),
    ErrorType.REFERENTIAL_INTEGRITY: (_H, "This line references an ID that does not exist in the target table."),
    ErrorType.TRIP_TOO_FEW_STOP_TIMES: (_M, "A trip must have at least two stop times to represent travel."),
    ErrorType.TRAVEL_TOO_SLOW: (_M, "The vehicle travels extremely slowly between two stops."),
    ErrorType.TRAVEL_TOO_FAST: (_M, "The vehicle travels unrealistically fast between two stops."),
    ErrorType.TRAVEL_DISTANCE_ZERO: (_M, "The vehicle does not cover any distance between the last stop and this one."),
    ErrorType.TRAVEL_TIME_NEGATIVE: (_H, "The vehicle arrives at this stop before it departs from the previous one."),
    ErrorType.TRAVEL_TIME_ZERO: (_M, "The vehicle arrives at this stop at the same time it departs from the previous stop."),
    ErrorType.FEED_TRAVEL_TIMES_ROUNDED: (_L, "All travel times in the feed are rounded to the minute."),
    ErrorType.DEPARTURE_BEFORE_ARRIVAL: (_M, "The vehicle departs from this stop before it arrives."),
    ErrorType.STOP_TIME_UNUSED: (_L, "This stop time allows neither pickup nor drop off and is not a timepoint."),
    ErrorType.TIMEPOINT_MISSING_TIMES: (_M, "This stop time is a timepoint but is missing both arrival and departure times."),
    ErrorType.SHAPE_DIST_TRAVELED_NOT_INCREASING: (_M, "Shape distance traveled must increase with stop times."),
    ErrorType.TRIP_OVERLAP_IN_BLOCK: (_M, "A trip overlaps another trip in the same block."),
    ErrorType.TRIP_NEVER_ACTIVE: (_M, "A trip is defined, but its service is never running on any date."),
    ErrorType.TRIP_EMPTY: (_H, "This trip is defined but has no stop times."),
    ErrorType.MULTIPLE_SHAPES_FOR_PATTERN: (_M, "Multiple shapes found for a single unique sequence of stops."),
    ErrorType.STOP_UNUSED: (_M, "This stop is not referenced by any trips."),
    ErrorType.STOP_GEOGRAPHIC_OUTLIER: (_H, "This stop is located very far from the middle 90% of stops in this feed."),
    ErrorType.ROUTE_UNUSED: (_H, "This route is defined but has no trips."),
    ErrorType.ROUTE_SHORT_AND_LONG_NAME_MISSING: (_H, "A route has neither a long nor a short name."),
    ErrorType.ROUTE_SHORT_NAME_TOO_LONG: (_M, "The short name on this route is too long."),
    ErrorType.ROUTE_LONG_NAME_CONTAINS_SHORT_NAME: (_L, "The long name of a route should complement the short name, not include it."),
    ErrorType.ROUTE_DESCRIPTION_SAME_AS_NAME: (_L, "The description of a route is identical to its name."),
    ErrorType.ROUTE_TYPE_INVALID: (_H, "The route type is not among the basic or extended route types."),
    ErrorType.TIME_ZONE_FORMAT: (_M, "Time zone format should match a value from the IANA time zone database."),
    ErrorType.FARE_TRANSFER_MISMATCH: (_M, "A fare that does not permit transfers has a non-zero transfer duration."),
    ErrorType.FREQUENCY_PERIOD_OVERLAP: (_M, "A frequency for a trip overlaps with another frequency defined for the same trip."),
    ErrorType.SERVICE_WITHOUT_DAYS_OF_WEEK: (_M, "This service is defined but is not active on any day of the week."),
    ErrorType.SERVICE_NEVER_ACTIVE: (_M, "A service code was defined, but is never active on any date."),
    ErrorType.SERVICE_UNUSED: (_M, "A service code was defined, but is never referenced by any trips."),
    ErrorType.NO_SERVICE: (_H, "There is no service defined on any day in this feed."),
    ErrorType.DATE_NO_SERVICE: (_M, "No service_ids were active on a date within the range of dates with defined service."),
    ErrorType.VALIDATOR_FAILED: (_H, "A validator failed to complete due to an unexpected error."),
}

del _H, _M, _L


@dataclass(frozen=True, slots=True)
class FeedIssue:
    """
    One recorded problem, stored as a row of the namespace's errors table.

    `entity_type` is the table the problem was found in, or None for feed-wide
    problems such as NO_SERVICE.
    """

    error_type: ErrorType
    entity_type: Optional[str] = None
    line_number: Optional[int] = None
    entity_id: Optional[str] = None
    entity_sequence: Optional[int] = None
    bad_value: Optional[str] = None

    def as_row(self) -> tuple[object, ...]:
        return (
            self.error_type.value,
            self.entity_type,
            self.line_number,
            self.entity_id,
            self.entity_sequence,
            self.bad_value,
        )


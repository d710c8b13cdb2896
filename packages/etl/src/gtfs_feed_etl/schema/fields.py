from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

from gtfs_feed_etl.issues.types import ErrorType

from .conditions import Condition


class Requirement(StrEnum):
    REQUIRED = "REQUIRED"
    OPTIONAL = "OPTIONAL"
    EXTENSION = "EXTENSION"
    PROPRIETARY = "PROPRIETARY"
    UNKNOWN = "UNKNOWN"
    EDITOR = "EDITOR"

    @property
    def is_gtfs(self) -> bool:
        return self in (Requirement.REQUIRED, Requirement.OPTIONAL)


class FieldKind(StrEnum):
    STRING = "string"
    INTEGER = "integer"
    SHORT = "short"
    DOUBLE = "double"
    DATE = "date"
    TIME = "time"
    COLOR = "color"
    URL = "url"
    CURRENCY = "currency"
    LANGUAGE = "language"
    STRING_LIST = "string_list"
    DATE_LIST = "date_list"


@dataclass(frozen=True, slots=True)
class FieldIssue:
    error_type: ErrorType
    bad_value: str


@dataclass(frozen=True, slots=True)
class FieldResult:
    """Canonical value of one cell. `value` is None when conversion failed."""

    value: Any
    issues: tuple[FieldIssue, ...] = ()


@dataclass(frozen=True, slots=True)
class Field:
    name: str
    requirement: Requirement
    kind: FieldKind = FieldKind.STRING
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    output_precision: int = -1
    references: tuple[str, ...] = ()
    index: bool = False
    empty_value_permitted: bool = False
    conditions: tuple[Condition, ...] = ()

    @property
    def is_required(self) -> bool:
        return self.requirement == Requirement.REQUIRED

    @property
    def is_foreign_reference(self) -> bool:
        return bool(self.references)

    @property
    def sql_type(self) -> str:
        return _SQL_TYPES.get(self.kind, "TEXT")

    def convert(self, raw: str) -> FieldResult:
        return CONVERTERS[self.kind](raw, self)

    def to_text(self, value: Any) -> str:
        if value is None:
            return ""
        if self.kind == FieldKind.TIME:
            return format_time(int(value))
        if self.kind == FieldKind.DOUBLE:
            return format_double(float(value), self.output_precision)
        return str(value)


_SQL_TYPES: dict[FieldKind, str] = {
    FieldKind.INTEGER: "INTEGER",
    FieldKind.SHORT: "INTEGER",
    FieldKind.TIME: "INTEGER",
    FieldKind.DOUBLE: "REAL",
}


# Conversion

_INT_RE = re.compile(r"[+-]?\d+")
_FLOAT_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_DATE_RE = re.compile(r"\d{8}")
_COLOR_RE = re.compile(r"[0-9A-Fa-f]{6}")
_LANGUAGE_RE = re.compile(r"[A-Za-z]{2,3}(-[A-Za-z0-9]{1,8})*")
_ILLEGAL_CHARS = str.maketrans({"\t": " ", "\n": " ", "\r": " "})

MIN_YEAR = 2000
MAX_YEAR = 2100
MAX_SERVICE_HOURS = 150

CURRENCY_CODES = frozenset(
    """
    AED AFN ALL AMD ANG AOA ARS AUD AWG AZN BAM BBD BDT BGN BHD BIF BMD BND BOB
    BRL BSD BTN BWP BYN BZD CAD CDF CHF CLP CNY COP CRC CUC CUP CVE CZK DJF DKK
    DOP DZD EGP ERN ETB EUR FJD FKP GBP GEL GHS GIP GMD GNF GTQ GYD HKD HNL HRK
    HTG HUF IDR ILS INR IQD IRR ISK JMD JOD JPY KES KGS KHR KMF KPW KRW KWD KYD
    KZT LAK LBP LKR LRD LSL LYD MAD MDL MGA MKD MMK MNT MOP MRU MUR MVR MWK MXN
    MYR MZN NAD NGN NIO NOK NPR NZD OMR PAB PEN PGK PHP PKR PLN PYG QAR RON RSD
    RUB RWF SAR SBD SCR SDG SEK SGD SHP SLE SLL SOS SRD SSP STN SVC SYP SZL THB
    TJS TMT TND TOP TRY TTD TWD TZS UAH UGX USD UYU UZS VES VND VUV WST XAF XCD
    XOF XPF YER ZAR ZMW ZWL
    """.split()
)

Converter = Callable[[str, Field], FieldResult]


def _fail(error_type: ErrorType, raw: str) -> FieldResult:
    return FieldResult(None, (FieldIssue(error_type, raw),))


def _check_range(value: float, raw: str, field: Field) -> Optional[FieldIssue]:
    if field.min_value is not None and value < field.min_value:
        return FieldIssue(ErrorType.NUMBER_TOO_SMALL, raw)
    if field.max_value is not None and value > field.max_value:
        return FieldIssue(ErrorType.NUMBER_TOO_LARGE, raw)
    return None


def convert_string(raw: str, field: Field) -> FieldResult:
    cleaned = raw.translate(_ILLEGAL_CHARS)
    if cleaned != raw:
        return FieldResult(cleaned, (FieldIssue(ErrorType.ILLEGAL_FIELD_VALUE, raw),))
    return FieldResult(raw)


def convert_integer(raw: str, field: Field) -> FieldResult:
    text = raw.strip()
    if not _INT_RE.fullmatch(text):
        return _fail(ErrorType.NUMBER_PARSING, raw)
    value = int(text)
    issue = _check_range(value, raw, field)
    if issue is not None:
        return FieldResult(None, (issue,))
    return FieldResult(value)


def convert_short(raw: str, field: Field) -> FieldResult:
    text = raw.strip()
    if not _INT_RE.fullmatch(text):
        return _fail(ErrorType.NUMBER_PARSING, raw)
    value = int(text)
    if value < 0:
        return _fail(ErrorType.NUMBER_NEGATIVE, raw)
    issue = _check_range(value, raw, field)
    if issue is not None:
        return FieldResult(None, (issue,))
    return FieldResult(value)


def convert_double(raw: str, field: Field) -> FieldResult:
    text = raw.strip()
    if not _FLOAT_RE.fullmatch(text):
        return _fail(ErrorType.NUMBER_PARSING, raw)
    value = float(text)
    if not math.isfinite(value):
        return _fail(ErrorType.NUMBER_PARSING, raw)
    issue = _check_range(value, raw, field)
    if issue is not None:
        return FieldResult(None, (issue,))
    return FieldResult(value)


def parse_date(text: str) -> Optional[date]:
    if not _DATE_RE.fullmatch(text):
        return None
    try:
        return date(int(text[0:4]), int(text[4:6]), int(text[6:8]))
    except ValueError:
        return None


def convert_date(raw: str, field: Field) -> FieldResult:
    parsed = parse_date(raw)
    if parsed is None:
        return _fail(ErrorType.DATE_FORMAT, raw)
    if not MIN_YEAR <= parsed.year <= MAX_YEAR:
        return FieldResult(raw, (FieldIssue(ErrorType.DATE_RANGE, raw),))
    return FieldResult(raw)


def convert_time(raw: str, field: Field) -> FieldResult:
    """
    H:MM:SS or HH:MM:SS to seconds since midnight. Hours past 23 are service
    running past midnight of the service day.
    """
    parts = raw.split(":")
    if len(parts) != 3 or len(raw) not in (7, 8):
        return _fail(ErrorType.TIME_FORMAT, raw)
    try:
        hours, minutes, seconds = (int(p) for p in parts)
    except ValueError:
        return _fail(ErrorType.TIME_FORMAT, raw)
    if hours < 0 or minutes < 0 or seconds < 0:
        return _fail(ErrorType.NUMBER_NEGATIVE, raw)
    if minutes > 59 or seconds > 59 or hours > MAX_SERVICE_HOURS:
        return _fail(ErrorType.NUMBER_TOO_LARGE, raw)
    return FieldResult(hours * 3600 + minutes * 60 + seconds)


def convert_color(raw: str, field: Field) -> FieldResult:
    if not _COLOR_RE.fullmatch(raw):
        return FieldResult(raw, (FieldIssue(ErrorType.COLOR_FORMAT, raw),))
    return FieldResult(raw)


def convert_url(raw: str, field: Field) -> FieldResult:
    try:
        parts = urlsplit(raw)
        ok = bool(parts.scheme) and bool(parts.netloc)
    except ValueError:
        ok = False
    if not ok:
        return FieldResult(raw, (FieldIssue(ErrorType.URL_FORMAT, raw),))
    return FieldResult(raw)


def convert_currency(raw: str, field: Field) -> FieldResult:
    if raw not in CURRENCY_CODES:
        return FieldResult(raw, (FieldIssue(ErrorType.CURRENCY_UNKNOWN, raw),))
    return FieldResult(raw)


def convert_language(raw: str, field: Field) -> FieldResult:
    if not _LANGUAGE_RE.fullmatch(raw):
        return FieldResult(raw, (FieldIssue(ErrorType.LANGUAGE_FORMAT, raw),))
    return FieldResult(raw)


def _convert_list(raw: str, field: Field, element: Converter) -> FieldResult:
    values: list[str] = []
    issues: list[FieldIssue] = []
    for part in raw.split(","):
        res = element(part, field)
        issues.extend(res.issues)
        if res.value is not None:
            values.append(str(res.value))
    return FieldResult(",".join(values), tuple(issues))


def convert_string_list(raw: str, field: Field) -> FieldResult:
    return _convert_list(raw, field, convert_string)


def convert_date_list(raw: str, field: Field) -> FieldResult:
    return _convert_list(raw, field, convert_date)


CONVERTERS: dict[FieldKind, Converter] = {
    FieldKind.STRING: convert_string,
    FieldKind.INTEGER: convert_integer,
    FieldKind.SHORT: convert_short,
    FieldKind.DOUBLE: convert_double,
    FieldKind.DATE: convert_date,
    FieldKind.TIME: convert_time,
    FieldKind.COLOR: convert_color,
    FieldKind.URL: convert_url,
    FieldKind.CURRENCY: convert_currency,
    FieldKind.LANGUAGE: convert_language,
    FieldKind.STRING_LIST: convert_string_list,
    FieldKind.DATE_LIST: convert_date_list,
}


# Output projection


def format_time(seconds: int) -> str:
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_double(value: float, precision: int = -1) -> str:
    if precision >= 0:
        value = round(value, precision)
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    text = repr(value)
    if "e" in text or "E" in text:
        text = f"{value:.17f}".rstrip("0").rstrip(".")
    return text

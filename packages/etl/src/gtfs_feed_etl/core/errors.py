from __future__ import annotations

import traceback
from dataclasses import dataclass


class FeedETLError(RuntimeError):
    """Base error"""


@dataclass(frozen=True, slots=True)
class FatalError:
    """
    A normalized record for a failure caught at a table or validator boundary.
    """

    exc_type: str
    message: str
    traceback: str

    def __str__(self) -> str:
        return f"{self.exc_type}: {self.message}"


def fatal_error_from_exc(exc: BaseException) -> FatalError:
    return FatalError(
        exc_type=type(exc).__name__,
        message=str(exc),
        traceback=traceback.format_exc(),
    )


class TransientError(FeedETLError):
    """
    Retryable failures such as network timeouts, temporary upstream 5xx
    """


class InputDataError(FeedETLError):
    """
    Non-retryable: the feed archive is present but cannot be read at all
    (not a zip, unreadable entry, undecodable text)
    """


class StorageError(FeedETLError):
    """The relational store refused a statement we generated"""


class LoadError(FeedETLError):
    """Load-stage error"""


class ValidationError(FeedETLError):
    """Validate-stage error"""


class ExportError(FeedETLError):
    """Export-stage error"""

from .storage import ERRORS_TABLE, ErrorStorage
from .types import ErrorType, FeedIssue, Priority

__all__ = ["ERRORS_TABLE", "ErrorStorage", "ErrorType", "FeedIssue", "Priority"]

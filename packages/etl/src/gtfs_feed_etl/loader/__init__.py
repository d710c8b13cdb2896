from .config import LoadConfig
from .loader import load_feed
from .reference_tracker import ReferenceTracker
from .results import FeedLoadResult, TableLoadResult
from .source import FeedSource, TableEntry

__all__ = [
    "LoadConfig",
    "load_feed",
    "ReferenceTracker",
    "FeedLoadResult",
    "TableLoadResult",
    "FeedSource",
    "TableEntry",
]

from .builder import PatternBuilder, travel_and_dwell_times
from .finder import Pattern, PatternFinder, name_patterns
from .key import TripPatternKey

__all__ = [
    "PatternBuilder",
    "travel_and_dwell_times",
    "Pattern",
    "PatternFinder",
    "name_patterns",
    "TripPatternKey",
]

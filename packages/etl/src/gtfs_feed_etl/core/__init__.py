from .config import Settings, load_settings
from .errors import (
    ExportError,
    FatalError,
    FeedETLError,
    InputDataError,
    LoadError,
    StorageError,
    TransientError,
    ValidationError,
    fatal_error_from_exc,
)
from .fs import atomic_replace, fsync_dir, make_tmp_path_for, safe_unlink
from .hashing import FileDigest, digest_file
from .ids import Timer, new_namespace_id
from .logging import bind, clear_bindings, configure_logging, get_logger
from .time import format_duration_ms, human_count, monotonic_ms, utc_now_iso

__all__ = [
    "Settings",
    "load_settings",
    "FeedETLError",
    "FatalError",
    "fatal_error_from_exc",
    "TransientError",
    "InputDataError",
    "StorageError",
    "LoadError",
    "ValidationError",
    "ExportError",
    "atomic_replace",
    "fsync_dir",
    "make_tmp_path_for",
    "safe_unlink",
    "FileDigest",
    "digest_file",
    "new_namespace_id",
    "Timer",
    "configure_logging",
    "get_logger",
    "bind",
    "clear_bindings",
    "format_duration_ms",
    "human_count",
    "monotonic_ms",
    "utc_now_iso",
]

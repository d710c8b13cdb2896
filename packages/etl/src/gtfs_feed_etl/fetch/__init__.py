from .http import (
    FeedDownload,
    FeedDownloadError,
    FeedNotFound,
    FeedUnavailable,
    FetchConfig,
    download_feed,
    make_http_client,
)

__all__ = [
    "FeedDownload",
    "FeedDownloadError",
    "FeedNotFound",
    "FeedUnavailable",
    "FetchConfig",
    "download_feed",
    "make_http_client",
]

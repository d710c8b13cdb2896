from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
from tenacity import RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from gtfs_feed_etl.core import (
    InputDataError,
    TransientError,
    atomic_replace,
    get_logger,
    make_tmp_path_for,
    safe_unlink,
)

log = get_logger(__name__)

TRANSIENT_STATUSES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})


class FeedDownloadError(RuntimeError):
    """A GTFS archive could not be downloaded."""


class FeedNotFound(FeedDownloadError, InputDataError):
    """The server answered with a status that retrying will not change."""

    def __init__(self, url: str, status_code: int, reason: str) -> None:
        super().__init__(f"GET {url} answered {status_code} {reason}".rstrip())
        self.url = url
        self.status_code = status_code


class FeedUnavailable(FeedDownloadError, TransientError):
    def __init__(self, url: str, attempts: int, cause: Optional[BaseException]) -> None:
        super().__init__(f"GET {url} still failing after {attempts} attempts: {cause!r}")
        self.url = url
        self.attempts = attempts


class _TransientStatus(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class FetchConfig:
    max_attempts: int = 3
    backoff_min: float = 0.5
    backoff_max: float = 4.0
    chunk_bytes: int = 1024 * 128
    user_agent: str = "gtfs-feed-etl/0.1"


@dataclass(frozen=True, slots=True)
class FeedDownload:
    """
    Where an archive was written and the validators the server gave for it.

    Passing a previous FeedDownload back to `download_feed` makes the request
    conditional; `modified` is False when the server confirmed the archive
    already on disk is current.
    """

    path: Path
    url: str
    size: int
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    modified: bool = True

    def conditional_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.etag:
            headers["If-None-Match"] = self.etag
        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified
        return headers


def make_http_client(
    *,
    user_agent: str = FetchConfig().user_agent,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    return httpx.Client(
        timeout=httpx.Timeout(connect=5.0, read=60.0, write=30.0, pool=5.0),
        follow_redirects=True,
        headers={"User-Agent": user_agent},
        transport=transport,
    )


def _header(resp: httpx.Response, name: str) -> Optional[str]:
    value = (resp.headers.get(name) or "").strip()
    return value or None


def _get_archive(
    client: httpx.Client,
    url: str,
    tmp_path: Path,
    headers: dict[str, str],
    chunk_bytes: int,
) -> Optional[httpx.Response]:
    """Write the body to tmp_path. None means 304, nothing written."""
    safe_unlink(tmp_path)
    with client.stream("GET", url, headers=headers) as resp:
        if resp.status_code == 304 and headers:
            return None
        if resp.status_code in TRANSIENT_STATUSES:
            raise _TransientStatus(resp.status_code)
        if resp.status_code != 200:
            raise FeedNotFound(url, resp.status_code, resp.reason_phrase)
        with tmp_path.open("wb") as f:
            for chunk in resp.iter_bytes(chunk_size=chunk_bytes):
                f.write(chunk)
            f.flush()
            os.fsync(f.fileno())
        return resp


def download_feed(
    url: str,
    dest: os.PathLike[str] | str,
    *,
    previous: Optional[FeedDownload] = None,
    cfg: FetchConfig = FetchConfig(),
    client: Optional[httpx.Client] = None,
) -> FeedDownload:
    """
    Download the GTFS archive at url to dest, retrying timeouts, connection
    failures and transient statuses. dest is replaced only once the whole
    body is on disk.
    """
    final_path = Path(dest)
    tmp_path = make_tmp_path_for(final_path)
    headers = previous.conditional_headers() if previous is not None and final_path.exists() else {}
    http = client or make_http_client(user_agent=cfg.user_agent)

    def _log_retry(state) -> None:
        exc = state.outcome.exception() if state.outcome else None
        log.warning("Retrying feed download", url=url, attempt=state.attempt_number, error=repr(exc))

    retrying = Retrying(
        stop=stop_after_attempt(cfg.max_attempts),
        wait=wait_exponential(min=cfg.backoff_min, max=cfg.backoff_max),
        retry=retry_if_exception_type((httpx.TransportError, _TransientStatus)),
        before_sleep=_log_retry,
    )
    log.info("Downloading feed", url=url, dest=str(final_path), conditional=bool(headers))
    try:
        resp = retrying(_get_archive, http, url, tmp_path, headers, cfg.chunk_bytes)
        if resp is None and previous is not None:
            log.info("Feed not modified", url=url)
            return FeedDownload(
                path=final_path,
                url=url,
                size=final_path.stat().st_size,
                etag=previous.etag,
                last_modified=previous.last_modified,
                modified=False,
            )
        atomic_replace(tmp_path, final_path)
    except RetryError as e:
        cause = e.last_attempt.exception()
        raise FeedUnavailable(url, e.last_attempt.attempt_number, cause) from cause
    finally:
        safe_unlink(tmp_path)
        if client is None:
            http.close()

    size = final_path.stat().st_size
    log.info("Feed downloaded", url=url, bytes=size)
    return FeedDownload(
        path=final_path,
        url=str(resp.url),
        size=size,
        etag=_header(resp, "ETag"),
        last_modified=_header(resp, "Last-Modified"),
    )

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from typing import Optional

from .time import monotonic_ms

NAMESPACE_LENGTH = 22


def new_namespace_id() -> str:
    """
    Random lowercase identifier for a loaded feed.

    22 letters carry about as much entropy as a UUID, so collisions are not
    checked for. Letters only, so the id is always a valid SQL identifier prefix.
    """
    return "".join(
        secrets.choice(string.ascii_lowercase) for _ in range(NAMESPACE_LENGTH)
    )


@dataclass(slots=True)
class Timer:
    """
    Minimal timing primitive. Use as context manager.

      with Timer() as t:
          ...
      duration = t.duration_ms
    """

    _t0_ms: int = field(default_factory=monotonic_ms, init=False)
    duration_ms: Optional[int] = field(default=None, init=False)

    def __enter__(self) -> "Timer":
        self._t0_ms = monotonic_ms()
        self.duration_ms = None
        return self

    def __exit__(self, *exc: object) -> None:
        self.duration_ms = monotonic_ms() - self._t0_ms

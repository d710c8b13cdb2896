from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LoadConfig:
    insert_batch_size: int = 500
    progress_interval: int = 500_000
    create_indexes: bool = True

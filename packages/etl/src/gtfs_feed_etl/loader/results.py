from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class TableLoadResult(BaseModel):
    row_count: int = 0
    error_count: int = 0
    file_size: int = 0
    fatal_exception: Optional[str] = None


class FeedLoadResult(BaseModel):
    namespace: Optional[str] = None
    filename: Optional[str] = None
    error_count: int = 0
    load_time_ms: int = 0
    completion_time: Optional[str] = None
    fatal_exception: Optional[str] = None
    tables: dict[str, TableLoadResult] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.fatal_exception is None and all(
            t.fatal_exception is None for t in self.tables.values()
        )

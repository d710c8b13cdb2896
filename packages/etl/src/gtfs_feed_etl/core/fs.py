from __future__ import annotations

import os
import tempfile
from pathlib import Path


def safe_unlink(path: os.PathLike[str] | str) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError:
        return


def fsync_dir(parent: Path) -> None:
    """
    Ensure directory entry durability after atomic rename.
    """
    fd: int | None = None
    try:
        fd = os.open(parent, os.O_RDONLY)
        os.fsync(fd)
    finally:
        if fd is not None:
            os.close(fd)


def make_tmp_path_for(final_path: Path) -> Path:
    """
    Reserve a temp file next to final_path (same filesystem) so rename is atomic.
    """
    final_path = Path(final_path)
    final_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{final_path.name}.", suffix=".tmp", dir=str(final_path.parent)
    )
    os.close(fd)
    return Path(tmp_name)


def atomic_replace(tmp_path: Path, final_path: Path) -> None:
    with open(tmp_path, "rb") as f:
        os.fsync(f.fileno())

    os.replace(tmp_path, final_path)
    fsync_dir(Path(final_path).parent)

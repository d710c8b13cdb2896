import hashlib
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FileDigest:
    md5: str
    sha1: str
    bytes: int


def digest_file(path: Path, *, chunk_bytes: int = 1024 * 1024) -> FileDigest:
    """
    md5 and sha1 of a feed archive in one pass, as recorded in the feed registry.
    """
    md5 = hashlib.md5()
    sha1 = hashlib.sha1()
    total = 0
    with path.open("rb") as f:
        while True:
            b = f.read(chunk_bytes)
            if not b:
                break
            md5.update(b)
            sha1.update(b)
            total += len(b)

    return FileDigest(md5=md5.hexdigest(), sha1=sha1.hexdigest(), bytes=total)

from __future__ import annotations

import gzip
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional, TextIO, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def ensure_outdir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


_GZIP_MAGIC = b"\x1f\x8b"


def is_gzipped(path: str | Path) -> bool:
    """Sniff the gzip magic bytes; BGZF (.gz, .bgz) files carry them too."""
    with open(path, "rb") as fh:
        return fh.read(2) == _GZIP_MAGIC


def open_textmaybe_gzip(path: str | Path, mode: str = "rt") -> TextIO:
    # gzip also reads BGZF, which is a series of gzip members.
    p = str(path)
    if "r" in mode:
        compressed = is_gzipped(p)
    else:
        compressed = p.endswith((".gz", ".bgz"))
    if compressed:
        return gzip.open(p, mode)  # type: ignore[return-value]
    return open(p, mode)


def write_json(path: str | Path, obj: Any) -> None:
    with open(path, "wt", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True)


def chunked(iterable: Iterable[T], n: int) -> Iterable[list[T]]:
    chunk: list[T] = []
    for item in iterable:
        chunk.append(item)
        if len(chunk) >= n:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def parse_int_csv(value: Optional[str]) -> tuple[int, ...]:
    """Parse "3,1" into (3, 1); empty or None gives ()."""
    if not value:
        return ()
    return tuple(int(x) for x in value.split(",") if x.strip())


"""
Helpers for feeding the connector: ndjson input and fixed-size grouping.
"""

import gzip
import json
from itertools import islice
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, TextIO, TypeVar, Union

T = TypeVar("T")


def grouped(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """Chunk an iterable into lists of at most ``size`` items, order kept."""
    if size <= 0:
        raise ValueError("size must be > 0")
    it = iter(items)
    while True:
        chunk = list(islice(it, size))
        if not chunk:
            return
        yield chunk


def iter_ndjson(source: Union[str, Path, TextIO]) -> Iterator[Dict[str, Any]]:
    """Yield one dict per non-blank line; ``.gz`` paths are decompressed."""
    if isinstance(source, (str, Path)):
        path = Path(source)
        opener = gzip.open if path.suffix == ".gz" else open
        with opener(path, "rt", encoding="utf-8") as fh:
            yield from iter_ndjson(fh)
        return

    for lineno, line in enumerate(source, 1):
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"line {lineno}: invalid JSON ({e.msg})") from e
        if not isinstance(obj, dict):
            raise ValueError(f"line {lineno}: expected a JSON object")
        yield obj


def to_ndjson(record: Any) -> str:
    return json.dumps(dict(record), default=str)

"""Lazy positional splitting of a record stream into batches."""
from itertools import islice
from typing import Any, Iterable, Iterator

from ..errors import ConfigError
from ..models import Batch


def split(records: Iterable[Any], batch_size: int) -> Iterator[Batch]:
    """
    Split `records` into batches of at most `batch_size` records.

    Batches are produced on demand, so the input is never fully materialized.
    The last batch may be shorter; an empty input yields no batches.

    Raises:
        ConfigError: if batch_size is not a positive integer
    """
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise ConfigError(f"batch size must be a positive integer, got {batch_size!r}")
    return _generate(iter(records), batch_size)


def _generate(iterator: Iterator[Any], batch_size: int) -> Iterator[Batch]:
    index = 0
    start = 0
    while True:
        chunk = list(islice(iterator, batch_size))
        if not chunk:
            return
        yield Batch(index=index, start=start, records=chunk)
        index += 1
        start += len(chunk)

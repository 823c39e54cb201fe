"""Record stream helpers for newline-delimited input."""
from pathlib import Path
from typing import Iterator, Union


def iter_lines(blob: str) -> Iterator[str]:
    """
    Lazily yield the non-blank lines of a newline-delimited blob.

    Lines are stripped of surrounding whitespace; the blob is never split into a
    full list.
    """
    position = 0
    length = len(blob)
    while position < length:
        end = blob.find("\n", position)
        if end == -1:
            end = length
        line = blob[position:end].strip()
        if line:
            yield line
        position = end + 1


def iter_file_lines(path: Path, encoding: str = "utf-8") -> Iterator[Union[str, bytes]]:
    """
    Lazily yield the non-blank lines of a file.

    Lines are decoded one at a time. A line that cannot be decoded is yielded as
    raw bytes so it fails on its own as an invalid record.
    """
    with open(path, "rb") as handle:
        for raw_line in handle:
            raw_line = raw_line.strip()
            if not raw_line:
                continue
            try:
                line = raw_line.decode(encoding)
            except UnicodeDecodeError:
                line = raw_line
            yield line

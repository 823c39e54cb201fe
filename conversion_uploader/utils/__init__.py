"""Utility helpers."""
from .events import EventEmitter
from .records import iter_file_lines, iter_lines

__all__ = ["EventEmitter", "iter_file_lines", "iter_lines"]

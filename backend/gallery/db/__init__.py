"""Record store module: parameterized access to the images table."""

from .store import RecordStore

__all__ = ["RecordStore"]

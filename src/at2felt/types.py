"""
Type definitions for the Airtable-to-Felt sync pipeline.

This module holds the immutable CSV document produced by the projector and
the exception hierarchy shared by every pipeline stage.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


@dataclass(frozen=True)
class CsvDocument:
    """Serialized CSV export: header, rows and the rendered text.

    The document is never mutated after creation, so the local listener can
    hand the same bytes to every request without locking.
    """
    header: tuple[str, ...]
    rows: tuple[tuple[Any, ...], ...]
    text: str

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def encode(self, encoding: str = "utf-8") -> bytes:
        try:
            return self.text.encode(encoding)
        except UnicodeError as e:
            raise SerializationError(f"Could not encode CSV document as {encoding}: {e}") from e

    def write(self, path: Path) -> Path:
        """Persist the document to disk as a debugging artifact."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.encode())
        return path


# Pipeline exception hierarchy
class SyncError(Exception):
    """Base exception for pipeline stage failures."""
    pass


class FetchError(SyncError):
    """Record store unreachable or query rejected."""
    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class SerializationError(SyncError):
    """CSV encoding failure."""
    pass


class TunnelError(SyncError):
    """Publisher could not establish a public endpoint."""
    pass


class LayerSyncError(SyncError):
    """Map platform list/create/refresh failed or returned a malformed response."""
    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        if status_code is not None:
            message = f"{message} (HTTP {status_code}): {body}"
        super().__init__(message)

"""
CsvProjector - Record to CSV projection

Maps each record onto the fixed, ordered column list and serializes the
result as a CSV document. Attachment fields are resolved to a single URL,
preferring the large thumbnail.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Sequence
from typing import Any, Optional

import pandas as pd

from ..domain.models import DEFAULT_FIELDS, Record
from ..types import CsvDocument, SerializationError

logger = logging.getLogger(__name__)


def resolve_picture(value: Any) -> Any:
    """
    Resolve an attachment field to one URL.

    Order: first attachment's large thumbnail, then its direct url, then
    None. Values that are not attachment lists are returned unchanged.
    """
    if not isinstance(value, list):
        return value
    if not value:
        return None

    first = value[0]
    if not isinstance(first, dict):
        return None

    thumbnails = first.get("thumbnails")
    large = thumbnails.get("large") if isinstance(thumbnails, dict) else None
    large_url = large.get("url") if isinstance(large, dict) else None
    if large_url:
        return large_url

    return first.get("url") or None


class CsvProjector:
    """
    Project records onto a fixed column list.

    The header always equals ``fields``, whatever the records contain;
    missing fields become empty cells.
    """

    def __init__(self, fields: Sequence[str] = DEFAULT_FIELDS, picture_field: Optional[str] = "Picture"):
        if not fields:
            raise ValueError("At least one field is required")
        self.fields = tuple(fields)
        self.picture_field = picture_field

    def project_row(self, record: Record) -> tuple[Any, ...]:
        row = []
        for name in self.fields:
            value = record.get(name)
            if name == self.picture_field:
                value = resolve_picture(value)
            row.append(value)
        return tuple(row)

    def project(self, records: Sequence[Record]) -> pd.DataFrame:
        """Build a DataFrame with one row per record, in input order."""
        rows = [self.project_row(record) for record in records]
        # object dtype keeps ints as ints when a column also holds blanks
        return pd.DataFrame(rows, columns=list(self.fields), dtype=object)

    def render(self, records: Sequence[Record]) -> CsvDocument:
        """
        Project records and serialize them to CSV.

        Raises:
            SerializationError: If the frame cannot be written as CSV text
        """
        df = self.project(records)
        try:
            text = df.to_csv(index=False, lineterminator="\n", quoting=csv.QUOTE_MINIMAL, na_rep="")
        except (TypeError, ValueError, UnicodeError, csv.Error) as e:
            raise SerializationError(f"Failed to serialize CSV: {e}") from e

        rows = tuple(tuple(row) for row in df.itertuples(index=False, name=None))
        document = CsvDocument(header=self.fields, rows=rows, text=text)
        # fail here rather than mid-request if the text cannot be encoded
        document.encode()

        logger.info(f"Projected {document.row_count} records onto {len(self.fields)} columns")
        return document

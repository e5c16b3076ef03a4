"""
Domain Models and Types

This module contains the core domain models and enumerations used throughout the pipeline.

Models:
- Record: Airtable record with its field mapping
- LayerInfo: Felt layer entry from the layer list
- SyncResult: Outcome of a create/refresh call
- SyncSettings: Non-secret pipeline settings
- SyncReport: Summary of one pipeline run

Enums:
- SyncAction: created or refreshed
- EmptyPolicy: behavior when no records match (skip, publish)
- LayerStatus: Felt layer processing states
"""

from .enums import EmptyPolicy, LayerStatus, SyncAction
from .models import (
    DEFAULT_FIELDS,
    DEFAULT_FILENAME,
    DEFAULT_LAYER_NAME,
    LayerInfo,
    Record,
    SyncReport,
    SyncResult,
    SyncSettings,
)

__all__ = [
    "Record", "LayerInfo", "SyncResult", "SyncSettings", "SyncReport",
    "SyncAction", "EmptyPolicy", "LayerStatus",
    "DEFAULT_FIELDS", "DEFAULT_FILENAME", "DEFAULT_LAYER_NAME",
]

"""
at2felt Pipeline Components

This module provides the pipeline architecture following the
Source → Transform → Publish → Synchronize pattern.

Components:
- source: AirtableSource for reading approved records
- transform: CsvProjector for record-to-row projection and CSV serialization
- publish: TransientPublisher for exposing the CSV through a local listener and ngrok
- felt: FeltLayerManager for creating or refreshing the Felt layer
- orchestrator: SyncPipeline sequencing the stages with guaranteed teardown
"""

from .felt import FeltLayerManager
from .orchestrator import SyncPipeline
from .publish import CsvFileServer, NgrokTunnel, TransientPublisher
from .source import AirtableSource
from .transform import CsvProjector

__all__ = [
    "AirtableSource", "CsvProjector", "CsvFileServer", "NgrokTunnel",
    "TransientPublisher", "FeltLayerManager", "SyncPipeline",
]

"""
Pipeline Enumerations

Core enums for type safety and clear interface definitions across the pipeline.
"""

from enum import Enum


class SyncAction(str, Enum):
    """Outcome of a layer synchronization."""
    CREATED = "created"     # No layer with the target name existed
    REFRESHED = "refreshed" # Existing layer re-imported from the new URL


class EmptyPolicy(str, Enum):
    """What to do when the record query returns nothing."""
    SKIP = "skip"           # Log and exit without touching the map
    PUBLISH = "publish"     # Publish a header-only CSV and sync anyway


class LayerStatus(str, Enum):
    """Processing states reported by Felt for a layer."""
    UPLOADING = "uploading"
    PROCESSING = "processing"
    FAILED = "failed"
    COMPLETED = "completed"

    @classmethod
    def in_flight(cls) -> set[str]:
        return {cls.UPLOADING.value, cls.PROCESSING.value}

"""
Pipeline Domain Models

Pydantic models for type safety and validation across the pipeline.
These models ensure data integrity and provide clear interfaces.
"""

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .enums import EmptyPolicy, SyncAction

# Column order is a contract with the Felt layer; do not reorder.
DEFAULT_FIELDS: tuple[str, ...] = ("Latitude", "Longitude", "Picture", "Submitted At")
DEFAULT_LAYER_NAME = "Poster Submissions"
DEFAULT_FILENAME = "offerings.csv"


class Record(BaseModel):
    """A single Airtable record. Fields are read-only to this system."""
    id: str = Field(..., description="Airtable record id")
    fields: dict[str, Any] = Field(default_factory=dict, description="Field name to value mapping")
    created_time: Optional[str] = Field(None, description="Record creation timestamp")

    class Config:
        """Pydantic configuration."""
        frozen = True

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)


class LayerInfo(BaseModel):
    """Layer entry as returned by the Felt layer list."""
    id: str = Field(..., description="Felt layer id")
    name: str = Field(..., description="Human-readable layer name")
    status: Optional[str] = Field(None, description="Processing status reported by Felt")

    class Config:
        """Pydantic configuration."""
        frozen = True
        extra = "ignore"


class SyncResult(BaseModel):
    """Result of creating or refreshing a layer."""
    action: SyncAction
    layer_id: Optional[str] = None
    import_url: str
    response: Any = None


class SyncSettings(BaseModel):
    """Non-secret pipeline settings, loaded from YAML and overridable from the CLI."""
    status: str = Field(default="Approved", description="Status value records must have")
    status_field: str = Field(default="Status", description="Field the status filter applies to")
    fields: list[str] = Field(default_factory=lambda: list(DEFAULT_FIELDS), description="Ordered CSV columns")
    picture_field: str = Field(default="Picture", description="Attachment field resolved to a URL")
    layer_name: str = Field(default=DEFAULT_LAYER_NAME, description="Target Felt layer name")
    port: int = Field(default=3000, description="Local port for the CSV listener")
    host: str = Field(default="127.0.0.1", description="Local bind address for the CSV listener")
    filename: str = Field(default=DEFAULT_FILENAME, description="Served CSV file name")
    settle_seconds: float = Field(default=15.0, description="Wait after create/refresh before teardown")
    wait_for_processing: bool = Field(default=False, description="Poll Felt until the layer finishes processing")
    processing_timeout_s: float = Field(default=120.0, description="Upper bound on status polling")
    poll_interval_s: float = Field(default=3.0, description="Delay between status polls")
    on_empty: EmptyPolicy = Field(default=EmptyPolicy.SKIP, description="Policy when no records match")
    csv_output: Optional[Path] = Field(None, description="Optional local copy of the generated CSV")

    class Config:
        """Pydantic configuration."""
        arbitrary_types_allowed = True  # Allow Path types

    @field_validator("fields")
    @classmethod
    def _fields_not_empty(cls, v):
        if not v:
            raise ValueError("At least one CSV field is required")
        return v

    @field_validator("port")
    @classmethod
    def _port_in_range(cls, v):
        if not 0 < v < 65536:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("settle_seconds", "processing_timeout_s")
    @classmethod
    def _non_negative(cls, v):
        if v < 0:
            raise ValueError("Durations must be non-negative")
        return v

    @field_validator("poll_interval_s")
    @classmethod
    def _positive_interval(cls, v):
        if v <= 0:
            raise ValueError("Poll interval must be positive")
        return v


class SyncReport(BaseModel):
    """Summary of one pipeline run, used for logging and the process exit status."""
    records_fetched: int = 0
    rows_written: int = 0
    public_url: Optional[str] = None
    sync: Optional[SyncResult] = None
    layer_status: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

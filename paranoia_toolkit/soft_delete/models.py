"""
Data models for soft delete operations.

These models validate restore options and describe deletion reports
produced by the service layer.
"""

from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RestoreOptions(BaseModel):
    """Options accepted by ``restore`` and ``restore_by_id``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    recursive: bool = Field(
        False, description="Also restore dependent-destroy associations"
    )
    recovery_window: Optional[timedelta] = Field(
        None, description="Duration around the deletion time that may be restored"
    )
    recovery_window_range: Optional[Tuple[datetime, datetime]] = Field(
        None, description="Explicit inclusive range the deletion time must fall in"
    )

    @field_validator("recovery_window")
    @classmethod
    def validate_window(cls, v: Optional[timedelta]) -> Optional[timedelta]:
        """Reject negative windows."""
        if v is not None and v < timedelta(0):
            raise ValueError("Recovery window must not be negative")
        return v

    @field_validator("recovery_window_range")
    @classmethod
    def validate_range(
        cls, v: Optional[Tuple[datetime, datetime]]
    ) -> Optional[Tuple[datetime, datetime]]:
        """Ensure the range is ordered."""
        if v is not None and v[0] > v[1]:
            raise ValueError("Recovery window range must start before it ends")
        return v


class DeletionReport(BaseModel):
    """Counts of soft-deleted records for a reporting period."""

    start_date: datetime = Field(..., description="Report period start")
    end_date: datetime = Field(..., description="Report period end")
    total_deleted: int = Field(0, description="Records deleted in the period")
    total_active: int = Field(0, description="Records currently active")
    by_type: Dict[str, int] = Field(
        default_factory=dict, description="Deletions by model"
    )

    def add_deletions(self, model_name: str, count: int) -> None:
        """Add deletions of one model to the report statistics."""
        self.total_deleted += count
        self.by_type[model_name] = self.by_type.get(model_name, 0) + count

"""
Pydantic schemas for CSV imports.

The request/preview/progress contracts are exchanged with the wizard
client in camelCase; batch and log records keep their column names.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from contact_import.contacts.schemas import ContactRow
from contact_import.imports.models import ImportStatus, LogEntryStatus


class CamelModel(BaseModel):
    """Base for schemas serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImportRequest(CamelModel):
    """Payload for preview and ingestion."""

    csv_data: str = Field(..., description="Base64 encoded CSV content")
    filename: str = Field(..., min_length=1, max_length=255, description="Original filename")


class ValidRow(CamelModel):
    row_number: int
    data: ContactRow


class InvalidRow(CamelModel):
    row_number: int
    errors: list[str]
    data: dict[str, str] = Field(..., description="Raw CSV values as uploaded")


class DuplicateGroup(CamelModel):
    """Rows sharing a normalized email or phone (and/or a stored contact)."""

    key: str
    row_numbers: list[int]


class BatchValidationResult(CamelModel):
    """Read-only validation report produced by the preview."""

    total_rows: int
    valid_rows: list[ValidRow] = Field(default_factory=list)
    invalid_rows: list[InvalidRow] = Field(default_factory=list)
    duplicate_emails: list[DuplicateGroup] = Field(default_factory=list)
    duplicate_phones: list[DuplicateGroup] = Field(default_factory=list)


class ImportProgress(CamelModel):
    """Pollable progress snapshot of an import batch."""

    batch_id: int
    status: ImportStatus
    total_records: int
    processed_records: int
    successful_records: int
    failed_records: int
    errors: list[str] = Field(default_factory=list)


class ImportBatchResponse(BaseModel):
    """Schema for import batch response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str
    total_records: int
    successful_records: int
    failed_records: int
    status: ImportStatus
    error_log: str | None
    created_at: datetime
    completed_at: datetime | None


class ImportLogEntryResponse(BaseModel):
    """Schema for import log entry response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    import_batch_id: int
    row_number: int
    status: LogEntryStatus
    error_message: str | None
    raw_data: str
    created_at: datetime

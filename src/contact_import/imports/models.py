"""
SQLAlchemy models for CSV import batches and their per-row audit log.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contact_import.contacts.models import utcnow
from contact_import.shared.database import Base


class ImportStatus(str, Enum):
    """Import batch lifecycle state."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class LogEntryStatus(str, Enum):
    """Outcome of a single imported row."""

    SUCCESS = "success"
    ERROR = "error"


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class ImportBatch(Base):
    """One ingestion run over one uploaded file."""

    __tablename__ = "import_batches"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    filename: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    total_records: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    successful_records: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    failed_records: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    status: Mapped[ImportStatus] = mapped_column(
        SQLEnum(ImportStatus, name="import_status", values_callable=_enum_values),
        nullable=False,
        default=ImportStatus.PENDING,
    )
    # JSON-encoded list of unexpected processing errors
    error_log: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    log_entries: Mapped[list["ImportLogEntry"]] = relationship(
        "ImportLogEntry",
        back_populates="import_batch",
        order_by="ImportLogEntry.row_number",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return (
            f"<ImportBatch(id={self.id}, filename={self.filename}, status={self.status}, "
            f"ok={self.successful_records}, failed={self.failed_records}/{self.total_records})>"
        )


class ImportLogEntry(Base):
    """Append-only audit record for one processed CSV row."""

    __tablename__ = "import_log_entries"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    import_batch_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("import_batches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    row_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    status: Mapped[LogEntryStatus] = mapped_column(
        SQLEnum(LogEntryStatus, name="log_entry_status", values_callable=_enum_values),
        nullable=False,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    # JSON string of the original CSV row
    raw_data: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    import_batch: Mapped[ImportBatch] = relationship(
        "ImportBatch",
        back_populates="log_entries",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return (
            f"<ImportLogEntry(batch={self.import_batch_id}, row={self.row_number}, "
            f"status={self.status})>"
        )

"""
Import ingestion: turns a confirmed CSV into stored contacts plus a
per-row audit trail.

Rows are processed strictly in file order, one chunk per transaction.
Each row's duplicate check runs in the same transaction as every insert
made before it in this run, so the first occurrence of an email or phone
wins and later ones are rejected.
"""

import json
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from contact_import.config import Settings, get_settings
from contact_import.contacts.models import Contact, utcnow
from contact_import.contacts.repository import ContactRepository
from contact_import.contacts.schemas import ContactRow
from contact_import.imports.csv_decoder import (
    EMPTY_FILE_MESSAGE,
    CSVRecord,
    decode_csv_payload,
    iter_chunks,
    parse_csv,
)
from contact_import.imports.models import ImportBatch, ImportStatus, LogEntryStatus
from contact_import.imports.repository import ImportBatchRepository, ImportLogRepository
from contact_import.imports.validator import validate_row
from contact_import.shared.database import unit_of_work
from contact_import.shared.exceptions import CSVFormatError
from contact_import.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ImportTally:
    """Row outcome counters plus batch-level error notes."""

    successful: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: "ImportTally") -> None:
        self.successful += other.successful
        self.failed += other.failed
        self.errors.extend(other.errors)


def final_status(successful: int, failed: int) -> ImportStatus:
    """Terminal status for a finished run."""
    if failed == 0:
        return ImportStatus.COMPLETED
    if successful == 0:
        return ImportStatus.FAILED
    return ImportStatus.COMPLETED


def serialize_raw(raw: dict[str, str]) -> str:
    return json.dumps(raw, ensure_ascii=False)


class ImportIngestionService:
    """Runs an import batch end to end."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        contact_repository: ContactRepository | None = None,
        batch_repository: ImportBatchRepository | None = None,
        log_repository: ImportLogRepository | None = None,
    ) -> None:
        """Initialize ingestion service.

        Args:
            session: Async database session; the service owns its
                transaction boundaries.
            settings: Optional settings override.
            contact_repository: Optional contact repository (for DI).
            batch_repository: Optional batch repository (for DI).
            log_repository: Optional log repository (for DI).
        """
        self._session = session
        self._chunk_size = (settings or get_settings()).import_chunk_size
        self._contacts = contact_repository or ContactRepository(session)
        self._batches = batch_repository or ImportBatchRepository(session)
        self._logs = log_repository or ImportLogRepository(session)

    async def start_import(self, csv_data: str, filename: str) -> ImportBatch:
        """Import a CSV file.

        Args:
            csv_data: Base64 encoded CSV content.
            filename: Original filename.

        Returns:
            The finalized import batch.

        Raises:
            CSVFormatError: If the content is empty, undecodable or lacks
                the mandatory columns. No batch is created in that case.
        """
        decoded = parse_csv(decode_csv_payload(csv_data))
        if decoded.is_empty:
            raise CSVFormatError(EMPTY_FILE_MESSAGE)

        async with unit_of_work(self._session):
            batch = await self._batches.create(
                ImportBatch(
                    filename=filename,
                    total_records=len(decoded),
                    successful_records=0,
                    failed_records=0,
                    status=ImportStatus.PROCESSING,
                )
            )
        batch_id = batch.id

        chunks = iter_chunks(decoded.records, self._chunk_size)
        logger.info(
            "Import started",
            extra={
                "batch_id": batch_id,
                "import_filename": filename,
                "total_records": len(decoded),
                "chunks": len(chunks),
            },
        )

        tally = ImportTally()
        for index, chunk in enumerate(chunks, start=1):
            tally.merge(await self._process_chunk(batch_id, index, chunk))

        return await self._finalize(batch_id, tally)

    async def _process_chunk(
        self,
        batch_id: int,
        index: int,
        chunk: list[CSVRecord],
    ) -> ImportTally:
        """Process one chunk inside a single transaction."""
        chunk_tally = ImportTally()
        try:
            async with unit_of_work(self._session):
                for record in chunk:
                    await self._process_row(batch_id, record, chunk_tally)
                await self._batches.add_counts(
                    batch_id, chunk_tally.successful, chunk_tally.failed
                )
        except Exception as exc:
            logger.exception(
                "Import chunk rolled back",
                extra={"batch_id": batch_id, "chunk": index, "rows": len(chunk)},
            )
            return await self._record_failed_chunk(batch_id, chunk, exc)

        logger.info(
            "Import chunk committed",
            extra={
                "batch_id": batch_id,
                "chunk": index,
                "rows": len(chunk),
                "successful": chunk_tally.successful,
                "failed": chunk_tally.failed,
            },
        )
        return chunk_tally

    async def _process_row(
        self,
        batch_id: int,
        record: CSVRecord,
        tally: ImportTally,
    ) -> None:
        """Validate, duplicate-check and insert one row, logging the outcome."""
        raw_data = serialize_raw(record.data)

        validation = validate_row(record.data)
        if validation.data is None:
            tally.failed += 1
            self._logs.add(
                batch_id,
                record.row_number,
                LogEntryStatus.ERROR,
                raw_data,
                error_message="Validation failed: " + "; ".join(validation.errors),
            )
            return

        try:
            async with self._session.begin_nested():
                inserted = await self._insert_contact(
                    batch_id, record.row_number, validation.data, raw_data
                )
        except Exception as exc:
            logger.exception(
                "Import row failed",
                extra={"batch_id": batch_id, "row_number": record.row_number},
            )
            message = str(exc) or exc.__class__.__name__
            tally.failed += 1
            tally.errors.append(message)
            self._logs.add(
                batch_id,
                record.row_number,
                LogEntryStatus.ERROR,
                raw_data,
                error_message=message,
            )
            return

        if inserted:
            tally.successful += 1
        else:
            tally.failed += 1

    async def _insert_contact(
        self,
        batch_id: int,
        row_number: int,
        row: ContactRow,
        raw_data: str,
    ) -> bool:
        """Insert the contact unless its email or phone is already taken.

        Returns:
            True when the contact was created, False on a duplicate.
        """
        if row.email or row.telefono:
            conflict = await self._contacts.find_conflict(row.email, row.telefono)
            if conflict is not None:
                field_name, value = conflict
                self._logs.add(
                    batch_id,
                    row_number,
                    LogEntryStatus.ERROR,
                    raw_data,
                    error_message=f"Duplicate {field_name}: {value}",
                )
                return False

        await self._contacts.create(
            Contact(
                nombre=row.nombre,
                apellido=row.apellido,
                email=row.email,
                telefono=row.telefono,
            )
        )
        self._logs.add(batch_id, row_number, LogEntryStatus.SUCCESS, raw_data)
        return True

    async def _record_failed_chunk(
        self,
        batch_id: int,
        chunk: list[CSVRecord],
        exc: Exception,
    ) -> ImportTally:
        """Log every row of a rolled-back chunk as failed."""
        message = str(exc) or exc.__class__.__name__
        tally = ImportTally(failed=len(chunk), errors=[message])
        async with unit_of_work(self._session):
            for record in chunk:
                self._logs.add(
                    batch_id,
                    record.row_number,
                    LogEntryStatus.ERROR,
                    serialize_raw(record.data),
                    error_message=message,
                )
            await self._batches.add_counts(batch_id, 0, tally.failed)
        return tally

    async def _finalize(self, batch_id: int, tally: ImportTally) -> ImportBatch:
        """Close the batch with its terminal status."""
        async with unit_of_work(self._session):
            batch = await self._batches.get_by_id(batch_id)
            if batch is None:
                raise RuntimeError(f"Import batch {batch_id} disappeared during ingestion")
            batch.successful_records = tally.successful
            batch.failed_records = tally.failed
            batch.status = final_status(tally.successful, tally.failed)
            batch.completed_at = utcnow()
            batch.error_log = json.dumps(tally.errors, ensure_ascii=False) if tally.errors else None

        logger.info(
            "Import finished",
            extra={
                "batch_id": batch_id,
                "status": batch.status.value,
                "total_records": batch.total_records,
                "successful": batch.successful_records,
                "failed": batch.failed_records,
                "unexpected_errors": len(tally.errors),
            },
        )
        return batch

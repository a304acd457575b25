"""
Import status, log and audit export.

All operations are read-only and observe whatever has been committed so
far, so they can run while an ingestion is still in flight.
"""

import json
from datetime import datetime
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from contact_import.config import Settings, get_settings
from contact_import.imports.csv_decoder import CONTACT_FIELDS
from contact_import.imports.models import ImportBatch, ImportLogEntry, LogEntryStatus
from contact_import.imports.repository import ImportBatchRepository, ImportLogRepository
from contact_import.imports.schemas import ImportProgress
from contact_import.shared.exceptions import NotFoundError
from contact_import.shared.logging import get_logger

logger = get_logger(__name__)

EXPORT_HEADER = "Fila,Estado,Mensaje de Error,Nombre,Apellido,Email,Teléfono"

OUTCOME_LABELS = {
    LogEntryStatus.SUCCESS: "Exitoso",
    LogEntryStatus.ERROR: "Error",
}


def escape_csv_value(value: str) -> str:
    """Quote a value for CSV output when it holds a comma, quote or newline."""
    if any(ch in value for ch in (",", '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def format_report_date(value: datetime) -> str:
    """Day/month/year without zero padding, e.g. ``5/3/2024``."""
    return f"{value.day}/{value.month}/{value.year}"


def parse_raw_data(raw_data: str) -> dict[str, str]:
    """Recover the original field values of a log entry.

    Unparseable or non-object payloads yield empty values.
    """
    try:
        parsed = json.loads(raw_data)
    except (TypeError, ValueError):
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {k: "" if v is None else str(v) for k, v in parsed.items()}


def parse_error_log(error_log: str | None) -> list[str]:
    """Batch-level errors stored as a JSON list; anything else is kept verbatim."""
    if not error_log:
        return []
    try:
        parsed = json.loads(error_log)
    except ValueError:
        return [error_log]
    if isinstance(parsed, list):
        return [str(item) for item in parsed]
    return [str(parsed)]


class ImportReportService:
    """Read-side views over import batches."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        batch_repository: ImportBatchRepository | None = None,
        log_repository: ImportLogRepository | None = None,
    ) -> None:
        self._session = session
        self._error_limit = (settings or get_settings()).import_status_error_limit
        self._batches = batch_repository or ImportBatchRepository(session)
        self._logs = log_repository or ImportLogRepository(session)

    async def get_status(self, batch_id: int) -> ImportProgress | None:
        """Progress snapshot for a batch.

        Args:
            batch_id: Batch ID.

        Returns:
            Progress with at most ``import_status_error_limit`` errors
            (batch-level errors first, then row errors in row order), or
            None if the batch does not exist.
        """
        batch = await self._batches.get_by_id(batch_id)
        if batch is None:
            return None

        errors = parse_error_log(batch.error_log)[: self._error_limit]
        remaining = self._error_limit - len(errors)
        errors.extend(await self._logs.error_messages(batch_id, remaining))

        return ImportProgress(
            batch_id=batch.id,
            status=batch.status,
            total_records=batch.total_records,
            processed_records=await self._logs.count_by_batch(batch_id),
            successful_records=batch.successful_records,
            failed_records=batch.failed_records,
            errors=errors,
        )

    async def get_log(self, batch_id: int) -> Sequence[ImportLogEntry]:
        """Log entries of a batch ordered by row number; empty for unknown batches."""
        return await self._logs.list_by_batch(batch_id)

    async def list_batches(self) -> Sequence[ImportBatch]:
        """Import history, newest first."""
        return await self._batches.list_recent()

    async def export_log(self, batch_id: int) -> str:
        """Render the audit report of a batch as CSV text.

        Args:
            batch_id: Batch ID.

        Returns:
            Summary block, blank line, column header and one line per row.

        Raises:
            NotFoundError: If the batch does not exist.
        """
        batch = await self._batches.get_by_id(batch_id)
        if batch is None:
            raise NotFoundError(f"Import batch with ID {batch_id} not found")

        entries = await self._logs.list_by_batch(batch_id)

        lines = [
            f"Reporte de Importación - {batch.filename}",
            f"Fecha: {format_report_date(batch.created_at)}",
            f"Total de registros: {batch.total_records}",
            f"Exitosos: {batch.successful_records}",
            f"Fallidos: {batch.failed_records}",
            f"Estado: {batch.status.value}",
            "",
            EXPORT_HEADER,
        ]
        for entry in entries:
            raw = parse_raw_data(entry.raw_data)
            values = [
                str(entry.row_number),
                OUTCOME_LABELS[entry.status],
                entry.error_message or "",
                *(raw.get(name, "") for name in CONTACT_FIELDS),
            ]
            lines.append(",".join(escape_csv_value(v) for v in values))

        logger.info(
            "Import log exported",
            extra={"batch_id": batch_id, "entries": len(entries)},
        )
        return "\n".join(lines)

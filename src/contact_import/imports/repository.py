"""
Repositories for import batches and import log entries.
"""

from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from contact_import.imports.models import ImportBatch, ImportLogEntry, LogEntryStatus


class ImportBatchRepository:
    """Repository for import batch database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def create(self, batch: ImportBatch) -> ImportBatch:
        """Create an import batch.

        Args:
            batch: Batch to create.

        Returns:
            Created batch with ID.
        """
        self._session.add(batch)
        await self._session.flush()
        return batch

    async def get_by_id(self, batch_id: int) -> ImportBatch | None:
        """Get an import batch by ID.

        Args:
            batch_id: Batch ID.

        Returns:
            ImportBatch if found, None otherwise.
        """
        return await self._session.get(ImportBatch, batch_id)

    async def list_recent(self) -> Sequence[ImportBatch]:
        """List all import batches, most recent first."""
        stmt = select(ImportBatch).order_by(
            ImportBatch.created_at.desc(),
            ImportBatch.id.desc(),
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def add_counts(self, batch_id: int, successful: int, failed: int) -> None:
        """Advance the success/failure counters of a batch in place.

        Args:
            batch_id: Batch ID.
            successful: Rows to add to successful_records.
            failed: Rows to add to failed_records.
        """
        if not successful and not failed:
            return
        stmt = (
            update(ImportBatch)
            .where(ImportBatch.id == batch_id)
            .values(
                successful_records=ImportBatch.successful_records + successful,
                failed_records=ImportBatch.failed_records + failed,
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)


class ImportLogRepository:
    """Repository for import log entries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    def add(
        self,
        batch_id: int,
        row_number: int,
        status: LogEntryStatus,
        raw_data: str,
        error_message: str | None = None,
    ) -> ImportLogEntry:
        """Stage a log entry; it is written with the surrounding transaction.

        Args:
            batch_id: Owning batch ID.
            row_number: 1-based CSV row number.
            status: Row outcome.
            raw_data: JSON string of the original row.
            error_message: Failure description, only for errors.

        Returns:
            The pending log entry.
        """
        entry = ImportLogEntry(
            import_batch_id=batch_id,
            row_number=row_number,
            status=status,
            error_message=error_message,
            raw_data=raw_data,
        )
        self._session.add(entry)
        return entry

    async def list_by_batch(self, batch_id: int) -> Sequence[ImportLogEntry]:
        """All log entries of a batch ordered by row number.

        Args:
            batch_id: Batch ID.

        Returns:
            Log entries, ascending row number.
        """
        stmt = (
            select(ImportLogEntry)
            .where(ImportLogEntry.import_batch_id == batch_id)
            .order_by(ImportLogEntry.row_number.asc(), ImportLogEntry.id.asc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def count_by_batch(self, batch_id: int) -> int:
        """Number of log entries written for a batch."""
        stmt = select(func.count(ImportLogEntry.id)).where(
            ImportLogEntry.import_batch_id == batch_id
        )
        result = await self._session.execute(stmt)
        count = result.scalar()
        return count if count is not None else 0

    async def error_messages(self, batch_id: int, limit: int) -> list[str]:
        """First error messages of a batch, in row order.

        Args:
            batch_id: Batch ID.
            limit: Maximum number of messages.

        Returns:
            Non-null error messages.
        """
        if limit <= 0:
            return []
        stmt = (
            select(ImportLogEntry.error_message)
            .where(
                ImportLogEntry.import_batch_id == batch_id,
                ImportLogEntry.status == LogEntryStatus.ERROR,
                ImportLogEntry.error_message.is_not(None),
            )
            .order_by(ImportLogEntry.row_number.asc(), ImportLogEntry.id.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [message for message in result.scalars().all() if message is not None]

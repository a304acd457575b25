"""
Import preview: validation-only dry run over an uploaded CSV.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from contact_import.contacts.repository import ContactRepository
from contact_import.imports.csv_decoder import decode_csv_payload, parse_csv
from contact_import.imports.duplicates import DuplicateDetector
from contact_import.imports.schemas import BatchValidationResult, InvalidRow, ValidRow
from contact_import.imports.validator import validate_row
from contact_import.shared.logging import get_logger

logger = get_logger(__name__)


class ImportPreviewService:
    """Validates a CSV and reports duplicates without writing anything."""

    def __init__(
        self,
        session: AsyncSession,
        contact_repository: ContactRepository | None = None,
    ) -> None:
        self._session = session
        self._detector = DuplicateDetector(contact_repository or ContactRepository(session))

    async def preview_import(self, csv_data: str, filename: str) -> BatchValidationResult:
        """Decode, validate every row and scan for duplicates.

        Duplicates are advisory: flagged rows stay in ``valid_rows``.

        Args:
            csv_data: Base64 encoded CSV content.
            filename: Original filename (metadata only).

        Returns:
            Validation report.

        Raises:
            CSVFormatError: If the payload cannot be decoded or the header
                lacks the mandatory columns.
        """
        decoded = parse_csv(decode_csv_payload(csv_data))

        valid_rows: list[ValidRow] = []
        invalid_rows: list[InvalidRow] = []
        for record in decoded.records:
            result = validate_row(record.data)
            if result.data is not None:
                valid_rows.append(ValidRow(row_number=record.row_number, data=result.data))
            else:
                invalid_rows.append(
                    InvalidRow(
                        row_number=record.row_number,
                        errors=result.errors,
                        data=result.raw,
                    )
                )

        duplicate_emails, duplicate_phones = await self._detector.scan(valid_rows)

        logger.info(
            "CSV preview completed",
            extra={
                "import_filename": filename,
                "total_rows": len(decoded),
                "valid_rows": len(valid_rows),
                "invalid_rows": len(invalid_rows),
                "duplicate_emails": len(duplicate_emails),
                "duplicate_phones": len(duplicate_phones),
            },
        )

        return BatchValidationResult(
            total_rows=len(decoded),
            valid_rows=valid_rows,
            invalid_rows=invalid_rows,
            duplicate_emails=duplicate_emails,
            duplicate_phones=duplicate_phones,
        )

"""
API router for CSV contact imports.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from contact_import.imports.ingestion import ImportIngestionService
from contact_import.imports.preview import ImportPreviewService
from contact_import.imports.reporting import ImportReportService
from contact_import.imports.schemas import (
    BatchValidationResult,
    ImportBatchResponse,
    ImportLogEntryResponse,
    ImportProgress,
    ImportRequest,
)
from contact_import.imports.template import get_csv_template
from contact_import.shared.database import get_db_session
from contact_import.shared.exceptions import NotFoundError
from contact_import.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/imports", tags=["imports"])


def get_preview_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ImportPreviewService:
    """Dependency for preview service."""
    return ImportPreviewService(session=session)


def get_ingestion_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ImportIngestionService:
    """Dependency for ingestion service."""
    return ImportIngestionService(session=session)


def get_report_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ImportReportService:
    """Dependency for report service."""
    return ImportReportService(session=session)


@router.get(
    "/template",
    response_class=PlainTextResponse,
    summary="Download CSV template",
)
async def download_template() -> PlainTextResponse:
    return PlainTextResponse(
        content=get_csv_template(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="plantilla_contactos.csv"'},
    )


@router.post(
    "/preview",
    response_model=BatchValidationResult,
    response_model_by_alias=True,
    summary="Validate a CSV without importing it",
    description="Decode the CSV, validate every row and flag duplicate emails "
    "and phones (within the file and against stored contacts). Nothing is written.",
)
async def preview_import(
    request: ImportRequest,
    service: Annotated[ImportPreviewService, Depends(get_preview_service)],
) -> BatchValidationResult:
    """Dry-run validation report.

    Raises:
        400: Empty/undecodable payload or missing mandatory columns.
    """
    return await service.preview_import(request.csv_data, request.filename)


@router.post(
    "",
    response_model=ImportBatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import contacts from CSV",
    description="Run the import synchronously and return the finalized batch.",
)
async def start_import(
    request: ImportRequest,
    service: Annotated[ImportIngestionService, Depends(get_ingestion_service)],
) -> ImportBatchResponse:
    """Import every row of the CSV.

    Raises:
        400: Empty/undecodable payload or missing mandatory columns.
    """
    batch = await service.start_import(request.csv_data, request.filename)
    return ImportBatchResponse.model_validate(batch)


@router.get(
    "",
    response_model=list[ImportBatchResponse],
    summary="List import batches",
    description="Import history, newest first.",
)
async def list_imports(
    service: Annotated[ImportReportService, Depends(get_report_service)],
) -> list[ImportBatchResponse]:
    batches = await service.list_batches()
    return [ImportBatchResponse.model_validate(b) for b in batches]


@router.get(
    "/{batch_id}/status",
    response_model=ImportProgress,
    response_model_by_alias=True,
    summary="Get import progress",
)
async def get_import_status(
    batch_id: int,
    service: Annotated[ImportReportService, Depends(get_report_service)],
) -> ImportProgress:
    """Pollable progress of an import batch.

    Raises:
        404: Batch not found.
    """
    progress = await service.get_status(batch_id)
    if progress is None:
        raise NotFoundError(f"Import batch with ID {batch_id} not found")
    return progress


@router.get(
    "/{batch_id}/log",
    response_model=list[ImportLogEntryResponse],
    summary="Get per-row import log",
)
async def get_import_log(
    batch_id: int,
    service: Annotated[ImportReportService, Depends(get_report_service)],
) -> list[ImportLogEntryResponse]:
    entries = await service.get_log(batch_id)
    return [ImportLogEntryResponse.model_validate(e) for e in entries]


@router.get(
    "/{batch_id}/export",
    summary="Download import audit report",
    responses={200: {"content": {"text/csv": {}}}},
)
async def export_import_log(
    batch_id: int,
    service: Annotated[ImportReportService, Depends(get_report_service)],
) -> Response:
    """Audit report of a batch as a CSV attachment.

    Raises:
        404: Batch not found.
    """
    report = await service.export_log(batch_id)
    return Response(
        content=report,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="import_log_{batch_id}.csv"',
        },
    )

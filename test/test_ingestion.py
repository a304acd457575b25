"""
Tests for import ingestion.
"""

import json

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import b64
from contact_import.config import Settings
from contact_import.contacts.models import Contact
from contact_import.contacts.repository import ContactRepository
from contact_import.imports import ingestion as ingestion_module
from contact_import.imports.ingestion import ImportIngestionService, final_status
from contact_import.imports.models import ImportLogEntry, ImportStatus, LogEntryStatus
from contact_import.imports.preview import ImportPreviewService
from contact_import.imports.repository import ImportBatchRepository
from contact_import.shared.exceptions import CSVFormatError


async def _contacts(session: AsyncSession) -> list[Contact]:
    result = await session.execute(select(Contact).order_by(Contact.id))
    return list(result.scalars().all())


async def _log(session: AsyncSession, batch_id: int) -> list[ImportLogEntry]:
    result = await session.execute(
        select(ImportLogEntry)
        .where(ImportLogEntry.import_batch_id == batch_id)
        .order_by(ImportLogEntry.row_number)
    )
    return list(result.scalars().all())


class TestFinalStatus:
    """Tests for terminal status computation."""

    def test_all_successful(self):
        assert final_status(5, 0) == ImportStatus.COMPLETED

    def test_all_failed(self):
        assert final_status(0, 3) == ImportStatus.FAILED

    def test_mixed(self):
        assert final_status(2, 1) == ImportStatus.COMPLETED

    def test_nothing_processed(self):
        assert final_status(0, 0) == ImportStatus.COMPLETED


class TestImportIngestionService:
    """Tests for ImportIngestionService.start_import."""

    @pytest.mark.asyncio
    async def test_imports_valid_rows(self, db_session: AsyncSession, test_settings: Settings):
        service = ImportIngestionService(db_session, settings=test_settings)
        csv_text = (
            "nombre,apellido,email,telefono\n"
            "Juan ,Pérez,juan@example.com,+34600000001\n"
            "María,García,,\n"
        )

        batch = await service.start_import(b64(csv_text), "contacts.csv")

        assert batch.id is not None
        assert batch.filename == "contacts.csv"
        assert batch.status == ImportStatus.COMPLETED
        assert batch.total_records == 2
        assert batch.successful_records == 2
        assert batch.failed_records == 0
        assert batch.error_log is None
        assert batch.completed_at is not None

        contacts = await _contacts(db_session)
        assert [(c.nombre, c.apellido, c.email, c.telefono) for c in contacts] == [
            ("Juan", "Pérez", "juan@example.com", "+34600000001"),
            ("María", "García", None, None),
        ]

        entries = await _log(db_session, batch.id)
        assert [(e.row_number, e.status) for e in entries] == [
            (1, LogEntryStatus.SUCCESS),
            (2, LogEntryStatus.SUCCESS),
        ]
        assert all(e.error_message is None for e in entries)
        assert json.loads(entries[0].raw_data) == {
            "nombre": "Juan ",
            "apellido": "Pérez",
            "email": "juan@example.com",
            "telefono": "+34600000001",
        }

    @pytest.mark.asyncio
    async def test_validation_failures_logged(
        self,
        db_session: AsyncSession,
        test_settings: Settings,
    ):
        service = ImportIngestionService(db_session, settings=test_settings)
        csv_text = "nombre,apellido,email\n,,nope\nAna,Ruiz,ana@ruiz.es\n"

        batch = await service.start_import(b64(csv_text), "mixed.csv")

        assert batch.status == ImportStatus.COMPLETED
        assert batch.successful_records == 1
        assert batch.failed_records == 1

        entries = await _log(db_session, batch.id)
        assert entries[0].status == LogEntryStatus.ERROR
        assert entries[0].error_message == (
            "Validation failed: nombre: Nombre es obligatorio; "
            "apellido: Apellido es obligatorio; email: Email inválido"
        )
        assert entries[1].status == LogEntryStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_all_rows_failing_marks_batch_failed(
        self,
        db_session: AsyncSession,
        test_settings: Settings,
    ):
        service = ImportIngestionService(db_session, settings=test_settings)

        batch = await service.start_import(b64("nombre,apellido\n,X\nY,\n"), "bad.csv")

        assert batch.status == ImportStatus.FAILED
        assert batch.successful_records == 0
        assert batch.failed_records == 2
        assert await _contacts(db_session) == []

    @pytest.mark.asyncio
    async def test_duplicate_within_file(self, db_session: AsyncSession, test_settings: Settings):
        service = ImportIngestionService(db_session, settings=test_settings)
        csv_text = (
            "nombre,apellido,email,telefono\n"
            "Juan,Pérez,juan@example.com,1\n"
            "Juana,Pérez,JUAN@example.com,2\n"
            "Pedro,Gil,pedro@example.com,1\n"
        )

        batch = await service.start_import(b64(csv_text), "dups.csv")

        assert batch.successful_records == 1
        assert batch.failed_records == 2
        assert batch.status == ImportStatus.COMPLETED

        entries = await _log(db_session, batch.id)
        assert entries[0].status == LogEntryStatus.SUCCESS
        assert entries[1].error_message == "Duplicate email: JUAN@example.com"
        assert entries[2].error_message == "Duplicate telefono: 1"
        assert len(await _contacts(db_session)) == 1

    @pytest.mark.asyncio
    async def test_preview_is_repeatable_and_matches_import_total(
        self,
        db_session: AsyncSession,
        test_settings: Settings,
    ):
        csv_data = b64(
            "nombre,apellido,email,telefono\n"
            "\n"
            "Juan,Pérez,juan@example.com,+34600000001\n"
            "   \n"
            ",García,bad-email,\n"
            "Juana,Pérez,JUAN@example.com,+34600000002\n"
            "\n"
        )
        preview = ImportPreviewService(db_session)

        first = await preview.preview_import(csv_data, "contacts.csv")
        second = await preview.preview_import(csv_data, "contacts.csv")

        assert first == second
        assert first.total_rows == 3
        assert len(first.invalid_rows) == 1
        assert [g.row_numbers for g in first.duplicate_emails] == [[1, 3]]

        batch = await ImportIngestionService(db_session, settings=test_settings).start_import(
            csv_data, "contacts.csv"
        )

        assert batch.total_records == first.total_rows
        assert batch.successful_records + batch.failed_records == first.total_rows

    @pytest.mark.asyncio
    async def test_duplicate_of_stored_contact(
        self,
        db_session: AsyncSession,
        test_settings: Settings,
        stored_contact: Contact,
    ):
        service = ImportIngestionService(db_session, settings=test_settings)
        csv_text = (
            "nombre,apellido,email,telefono\n"
            "Ana,López,ana@example.com,+34999\n"
            "Otra,Persona,otra@example.com,+34111111111\n"
        )

        batch = await service.start_import(b64(csv_text), "store.csv")

        assert batch.status == ImportStatus.FAILED
        entries = await _log(db_session, batch.id)
        assert [e.error_message for e in entries] == [
            "Duplicate email: ana@example.com",
            "Duplicate telefono: +34111111111",
        ]
        assert len(await _contacts(db_session)) == 1

    @pytest.mark.asyncio
    async def test_chunked_processing(
        self,
        db_session: AsyncSession,
        test_settings: Settings,
        monkeypatch: pytest.MonkeyPatch,
    ):
        chunk_sizes: list[int] = []
        original = ingestion_module.iter_chunks

        def spy(records, size):
            chunks = original(records, size)
            chunk_sizes.extend(len(c) for c in chunks)
            return chunks

        monkeypatch.setattr(ingestion_module, "iter_chunks", spy)

        service = ImportIngestionService(db_session, settings=test_settings)
        rows = "\n".join(f"N{i},A{i},user{i}@example.com,{i}" for i in range(2500))

        batch = await service.start_import(
            b64("nombre,apellido,email,telefono\n" + rows),
            "big.csv",
        )

        assert chunk_sizes == [1000, 1000, 500]
        assert batch.total_records == 2500
        assert batch.successful_records == 2500
        assert batch.failed_records == 0
        assert batch.status == ImportStatus.COMPLETED
        assert len(await _log(db_session, batch.id)) == 2500

    @pytest.mark.asyncio
    async def test_duplicate_across_chunks(self, db_session: AsyncSession):
        settings = Settings(database_url="sqlite+aiosqlite:///:memory:", import_chunk_size=2)
        service = ImportIngestionService(db_session, settings=settings)
        csv_text = "nombre,apellido,email\nA,A,a@x.com\nB,B,b@x.com\nC,C,A@X.COM\n"

        batch = await service.start_import(b64(csv_text), "chunks.csv")

        assert batch.successful_records == 2
        assert batch.failed_records == 1
        entries = await _log(db_session, batch.id)
        assert entries[2].error_message == "Duplicate email: A@X.COM"

    @pytest.mark.asyncio
    async def test_unexpected_row_failure_is_contained(
        self,
        db_session: AsyncSession,
        test_settings: Settings,
        monkeypatch: pytest.MonkeyPatch,
    ):
        original = ContactRepository.create

        async def flaky_create(self, contact: Contact) -> Contact:
            if contact.nombre == "Boom":
                raise RuntimeError("storage exploded")
            return await original(self, contact)

        monkeypatch.setattr(ContactRepository, "create", flaky_create)

        service = ImportIngestionService(db_session, settings=test_settings)
        csv_text = "nombre,apellido\nA,A\nBoom,B\nC,C\n"

        batch = await service.start_import(b64(csv_text), "flaky.csv")

        assert batch.status == ImportStatus.COMPLETED
        assert batch.successful_records == 2
        assert batch.failed_records == 1
        assert json.loads(batch.error_log) == ["storage exploded"]

        entries = await _log(db_session, batch.id)
        assert [(e.row_number, e.status) for e in entries] == [
            (1, LogEntryStatus.SUCCESS),
            (2, LogEntryStatus.ERROR),
            (3, LogEntryStatus.SUCCESS),
        ]
        assert entries[1].error_message == "storage exploded"
        assert [c.nombre for c in await _contacts(db_session)] == ["A", "C"]

    @pytest.mark.asyncio
    async def test_failed_chunk_does_not_undo_other_chunks(
        self,
        db_session: AsyncSession,
        monkeypatch: pytest.MonkeyPatch,
    ):
        original = ImportBatchRepository.add_counts
        calls = {"n": 0}

        async def failing_once(self, batch_id: int, successful: int, failed: int) -> None:
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("commit lost")
            await original(self, batch_id, successful, failed)

        monkeypatch.setattr(ImportBatchRepository, "add_counts", failing_once)

        settings = Settings(database_url="sqlite+aiosqlite:///:memory:", import_chunk_size=2)
        service = ImportIngestionService(db_session, settings=settings)
        csv_text = "nombre,apellido\nA,A\nB,B\nC,C\nD,D\nE,E\n"

        batch = await service.start_import(b64(csv_text), "chunks.csv")

        assert batch.total_records == 5
        assert batch.successful_records == 3
        assert batch.failed_records == 2
        assert batch.successful_records + batch.failed_records == batch.total_records
        assert batch.status == ImportStatus.COMPLETED
        assert json.loads(batch.error_log) == ["commit lost"]

        entries = await _log(db_session, batch.id)
        assert [(e.row_number, e.status) for e in entries] == [
            (1, LogEntryStatus.SUCCESS),
            (2, LogEntryStatus.SUCCESS),
            (3, LogEntryStatus.ERROR),
            (4, LogEntryStatus.ERROR),
            (5, LogEntryStatus.SUCCESS),
        ]
        assert entries[2].error_message == "commit lost"
        assert [c.nombre for c in await _contacts(db_session)] == ["A", "B", "E"]

    @pytest.mark.asyncio
    async def test_header_only_creates_empty_batch(
        self,
        db_session: AsyncSession,
        test_settings: Settings,
    ):
        service = ImportIngestionService(db_session, settings=test_settings)

        batch = await service.start_import(b64("nombre,apellido,email,telefono\n"), "h.csv")

        assert batch.total_records == 0
        assert batch.successful_records == 0
        assert batch.failed_records == 0
        assert batch.status == ImportStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, db_session: AsyncSession, test_settings: Settings):
        service = ImportIngestionService(db_session, settings=test_settings)

        with pytest.raises(CSVFormatError) as exc_info:
            await service.start_import(b64("   \n"), "empty.csv")

        assert str(exc_info.value) == "CSV file is empty"
        assert await ImportBatchRepository(db_session).list_recent() == []

    @pytest.mark.asyncio
    async def test_missing_columns_rejected(
        self,
        db_session: AsyncSession,
        test_settings: Settings,
    ):
        service = ImportIngestionService(db_session, settings=test_settings)

        with pytest.raises(CSVFormatError) as exc_info:
            await service.start_import(b64("nombre,email\nA,a@b.com\n"), "cols.csv")

        assert str(exc_info.value) == "CSV must contain nombre and apellido columns"
        assert await ImportBatchRepository(db_session).list_recent() == []

"""
Contact service for business logic.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from contact_import.config import Settings, get_settings
from contact_import.contacts.repository import ContactRepository
from contact_import.contacts.schemas import ContactListResponse, ContactResponse
from contact_import.shared.exceptions import NotFoundError


class ContactService:
    """Service for contact read operations."""

    def __init__(
        self,
        session: AsyncSession,
        contact_repository: ContactRepository | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize contact service.

        Args:
            session: Async database session.
            contact_repository: Optional contact repository (for DI).
            settings: Optional settings override.
        """
        self._session = session
        self._contact_repo = contact_repository or ContactRepository(session)
        self._settings = settings or get_settings()

    async def get_contacts(
        self,
        page: int = 1,
        page_size: int = 50,
    ) -> ContactListResponse:
        """Get contacts with pagination, newest first.

        Out-of-range values are clamped instead of rejected.

        Args:
            page: Page number (1-indexed).
            page_size: Number of items per page.

        Returns:
            Paginated contact list.
        """
        page = max(1, page)
        page_size = max(1, min(self._settings.contacts_max_page_size, page_size))

        contacts, total = await self._contact_repo.list_paginated(
            page=page,
            page_size=page_size,
        )

        pages = (total + page_size - 1) // page_size if total > 0 else 0

        return ContactListResponse(
            items=[ContactResponse.model_validate(c) for c in contacts],
            total=total,
            page=page,
            page_size=page_size,
            pages=pages,
        )

    async def get_contact(self, contact_id: int) -> ContactResponse:
        """Get a single contact by ID.

        Raises:
            NotFoundError: If contact not found.
        """
        contact = await self._contact_repo.get_by_id(contact_id)
        if not contact:
            raise NotFoundError(f"Contact {contact_id} not found")

        return ContactResponse.model_validate(contact)

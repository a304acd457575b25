"""
Contact repository for database operations.
"""

from typing import Collection, Protocol, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from contact_import.contacts.models import Contact


class ContactRepositoryProtocol(Protocol):
    """Protocol for contact repository operations."""

    async def create(self, contact: Contact) -> Contact:
        """Insert a single contact."""
        ...

    async def find_matching(
        self,
        emails: Collection[str],
        phones: Collection[str],
    ) -> Sequence[Contact]:
        """Find stored contacts matching any email or phone."""
        ...

    async def find_conflict(
        self,
        email: str | None,
        telefono: str | None,
    ) -> tuple[str, str] | None:
        """Find the first field colliding with a stored contact."""
        ...


class ContactRepository:
    """Repository for contact database operations."""

    # Two IN lists per statement; asyncpg accepts at most 32767 parameters.
    lookup_batch_size = 5000

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def count(self) -> int:
        """Count all stored contacts."""
        result = await self._session.execute(select(func.count(Contact.id)))
        count = result.scalar()
        return count if count is not None else 0

    async def create(self, contact: Contact) -> Contact:
        """Create a single contact.

        The insert is flushed immediately so later lookups in the same
        transaction see it.

        Args:
            contact: Contact to create.

        Returns:
            Created contact with ID.
        """
        self._session.add(contact)
        await self._session.flush()
        return contact

    async def get_by_id(self, contact_id: int) -> Contact | None:
        """Get a contact by ID.

        Args:
            contact_id: Contact ID.

        Returns:
            Contact if found, None otherwise.
        """
        return await self._session.get(Contact, contact_id)

    async def list_paginated(
        self,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[Sequence[Contact], int]:
        """Get contacts with pagination, newest first.

        Args:
            page: Page number (1-indexed).
            page_size: Number of items per page.

        Returns:
            Tuple of (contacts list, total count).
        """
        total = await self.count()

        offset = (page - 1) * page_size
        stmt = (
            select(Contact)
            .order_by(Contact.created_at.desc(), Contact.id.desc())
            .offset(offset)
            .limit(page_size)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all(), total

    async def find_matching(
        self,
        emails: Collection[str],
        phones: Collection[str],
    ) -> Sequence[Contact]:
        """Find contacts whose email or phone is in the given sets.

        Emails are compared case-insensitively and must be passed lowercased;
        phones are compared exactly. Large inputs are looked up in slices of
        ``lookup_batch_size`` values per list so each statement stays under
        the driver's bind parameter limit.

        Args:
            emails: Lowercased email addresses.
            phones: Phone strings.

        Returns:
            Matching contacts, each contact once.
        """
        email_list = list(emails)
        phone_list = list(phones)
        size = self.lookup_batch_size

        found: dict[int, Contact] = {}
        for start in range(0, max(len(email_list), len(phone_list)), size):
            email_slice = email_list[start : start + size]
            phone_slice = phone_list[start : start + size]
            conditions = []
            if email_slice:
                conditions.append(func.lower(Contact.email).in_(email_slice))
            if phone_slice:
                conditions.append(Contact.telefono.in_(phone_slice))

            result = await self._session.execute(select(Contact).where(or_(*conditions)))
            for contact in result.scalars():
                found.setdefault(contact.id, contact)
        return list(found.values())

    async def find_conflict(
        self,
        email: str | None,
        telefono: str | None,
    ) -> tuple[str, str] | None:
        """Check whether a stored contact already uses this email or phone.

        Args:
            email: Candidate email (any case) or None.
            telefono: Candidate phone or None.

        Returns:
            ("email", value) or ("telefono", value) for the colliding field,
            email taking precedence; None when there is no collision.
        """
        email_key = email.lower() if email else None
        matches = await self.find_matching(
            [email_key] if email_key else [],
            [telefono] if telefono else [],
        )
        if not matches:
            return None

        if email_key and any((c.email or "").lower() == email_key for c in matches):
            return "email", email  # type: ignore[return-value]
        return "telefono", telefono  # type: ignore[return-value]

"""
Contact API router.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from contact_import.contacts.schemas import ContactListResponse, ContactResponse
from contact_import.contacts.service import ContactService
from contact_import.shared.database import get_db_session

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


def get_contact_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ContactService:
    """Dependency for contact service."""
    return ContactService(session=session)


@router.get(
    "",
    response_model=ContactListResponse,
    summary="List contacts",
    description="Get paginated list of imported contacts, newest first.",
)
async def list_contacts(
    service: Annotated[ContactService, Depends(get_contact_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 50,
) -> ContactListResponse:
    """List imported contacts.

    Args:
        service: Contact service.
        page: Page number (1-indexed).
        page_size: Number of items per page (max 100).

    Returns:
        Paginated contact list.
    """
    return await service.get_contacts(page=page, page_size=page_size)


@router.get(
    "/{contact_id}",
    response_model=ContactResponse,
    summary="Get contact details",
)
async def get_contact(
    contact_id: int,
    service: Annotated[ContactService, Depends(get_contact_service)],
) -> ContactResponse:
    """Get a specific contact.

    Raises:
        404: Contact not found.
    """
    return await service.get_contact(contact_id)

"""
Duplicate detection for contact imports.

Two passes over the validated rows:

* batch scan: rows of the same upload sharing an email (case-insensitive)
  or an exact phone string;
* store scan: rows whose email or phone already belongs to a stored
  contact, looked up through one repository call.
"""

from collections import defaultdict
from typing import Iterable

from contact_import.contacts.repository import ContactRepositoryProtocol
from contact_import.imports.schemas import DuplicateGroup, ValidRow


def email_key(email: str) -> str:
    return email.lower()


def _index_rows(rows: Iterable[ValidRow]) -> tuple[dict[str, list[int]], dict[str, list[int]]]:
    emails: dict[str, list[int]] = defaultdict(list)
    phones: dict[str, list[int]] = defaultdict(list)
    for row in rows:
        if row.data.email:
            emails[email_key(row.data.email)].append(row.row_number)
        if row.data.telefono:
            phones[row.data.telefono].append(row.row_number)
    return emails, phones


def _groups(index: dict[str, list[int]], keys: Iterable[str]) -> list[DuplicateGroup]:
    groups = [DuplicateGroup(key=key, row_numbers=sorted(index[key])) for key in keys]
    return sorted(groups, key=lambda g: (g.row_numbers[0], g.key))


def scan_batch(rows: list[ValidRow]) -> tuple[list[DuplicateGroup], list[DuplicateGroup]]:
    """Find emails and phones used by more than one row of the upload.

    Args:
        rows: Successfully validated rows.

    Returns:
        (email groups, phone groups), each ordered by first row number.
    """
    emails, phones = _index_rows(rows)
    return (
        _groups(emails, [k for k, v in emails.items() if len(v) > 1]),
        _groups(phones, [k for k, v in phones.items() if len(v) > 1]),
    )


class DuplicateDetector:
    """Batch and store duplicate scans over validated rows."""

    def __init__(self, contact_repository: ContactRepositoryProtocol) -> None:
        self._contacts = contact_repository

    async def scan(
        self,
        rows: list[ValidRow],
    ) -> tuple[list[DuplicateGroup], list[DuplicateGroup]]:
        """Batch scan followed by the store scan.

        Args:
            rows: Successfully validated rows.

        Returns:
            (email groups, phone groups), each ordered by first row number.
        """
        email_groups, phone_groups = scan_batch(rows)
        return await self.scan_store(rows, email_groups, phone_groups)

    async def scan_store(
        self,
        rows: list[ValidRow],
        email_groups: list[DuplicateGroup],
        phone_groups: list[DuplicateGroup],
    ) -> tuple[list[DuplicateGroup], list[DuplicateGroup]]:
        """Merge matches against stored contacts into the batch groups.

        A value present in the store is reported even when only one row of
        the upload uses it; values already grouped by the batch scan are
        left as they are.

        Args:
            rows: Successfully validated rows.
            email_groups: Result of the batch scan for emails.
            phone_groups: Result of the batch scan for phones.

        Returns:
            (email groups, phone groups), each ordered by first row number.
        """
        emails, phones = _index_rows(rows)
        if not emails and not phones:
            return email_groups, phone_groups

        dup_emails = {g.key for g in email_groups}
        dup_phones = {g.key for g in phone_groups}

        stored = await self._contacts.find_matching(emails.keys(), phones.keys())
        for contact in stored:
            if contact.email and email_key(contact.email) in emails:
                dup_emails.add(email_key(contact.email))
            if contact.telefono and contact.telefono in phones:
                dup_phones.add(contact.telefono)

        return _groups(emails, dup_emails), _groups(phones, dup_phones)

"""
CSV decoding for contact imports.

Turns the base64 payload sent by the client into an ordered list of
header-keyed rows. Row numbers are 1-based positions among the non-blank
data lines (the header is not counted).
"""

import base64
import binascii
import csv
import re
from dataclasses import dataclass, field

from contact_import.shared.exceptions import CSVFormatError
from contact_import.shared.logging import get_logger

logger = get_logger(__name__)

REQUIRED_HEADERS = frozenset({"nombre", "apellido"})
CONTACT_FIELDS = ("nombre", "apellido", "email", "telefono")

EMPTY_FILE_MESSAGE = "CSV file is empty"
MISSING_HEADERS_MESSAGE = "CSV must contain nombre and apellido columns"

# Header aliases for flexibility
HEADER_ALIASES: dict[str, str] = {
    "name": "nombre",
    "first_name": "nombre",
    "firstname": "nombre",
    "given_name": "nombre",
    "nombres": "nombre",
    "last_name": "apellido",
    "lastname": "apellido",
    "surname": "apellido",
    "family_name": "apellido",
    "apellidos": "apellido",
    "mail": "email",
    "e_mail": "email",
    "email_address": "email",
    "correo": "email",
    "correo_electronico": "email",
    "phone": "telefono",
    "phone_number": "telefono",
    "telephone": "telefono",
    "tel": "telefono",
    "mobile": "telefono",
    "teléfono": "telefono",
    "movil": "telefono",
    "móvil": "telefono",
    "celular": "telefono",
}


@dataclass(frozen=True)
class CSVRecord:
    """One decoded data row."""

    row_number: int
    data: dict[str, str]


@dataclass
class DecodedCSV:
    """Header names plus data rows, in file order."""

    headers: list[str] = field(default_factory=list)
    records: list[CSVRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when the content had no header line at all."""
        return not self.headers

    def __len__(self) -> int:
        return len(self.records)


def normalize_header(header: str) -> str:
    """Normalize a CSV header to standard field name.

    Args:
        header: Raw header string.

    Returns:
        Normalized header name.
    """
    h = header.strip().strip('"').strip().lower()
    h = h.replace(" ", "_")
    h = h.replace("-", "_")
    h = re.sub(r"__+", "_", h)
    return HEADER_ALIASES.get(h, h)


def decode_csv_payload(encoded: str, encoding: str = "utf-8") -> str:
    """Decode the base64 transport encoding into CSV text.

    Args:
        encoded: Base64 encoded file content.
        encoding: Text encoding of the file.

    Returns:
        The file content as text, without a leading BOM.

    Raises:
        CSVFormatError: If the payload is not base64 or not valid text.
    """
    try:
        content = base64.b64decode(encoded)
    except (binascii.Error, ValueError) as e:
        raise CSVFormatError("CSV payload is not valid base64", details={"error": str(e)}) from e

    try:
        text = content.decode(encoding)
    except UnicodeDecodeError as e:
        raise CSVFormatError(f"File encoding error: {e}") from e

    return text.lstrip("\ufeff")


def _split_line(line: str, delimiter: str) -> list[str]:
    """Split one physical line into fields; a record never spans lines."""
    return next(csv.reader([line], delimiter=delimiter, skipinitialspace=True), [])


def parse_csv(text: str, delimiter: str = ",") -> DecodedCSV:
    """Parse CSV text into header-keyed rows.

    The first non-blank line is the header; blank lines are skipped and do
    not consume a row number. Each line is one record, so an unbalanced
    quote only affects the line it appears on. Rows shorter than the header
    are padded with empty strings, extra trailing fields are dropped.

    Args:
        text: CSV file content.
        delimiter: CSV field delimiter.

    Returns:
        Decoded CSV. Empty content (or a lone header) yields no records.

    Raises:
        CSVFormatError: If the header lacks the mandatory name columns.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return DecodedCSV()

    header_line, *data_lines = lines
    headers = [normalize_header(h) for h in _split_line(header_line, delimiter)]

    missing = REQUIRED_HEADERS - set(headers)
    if missing:
        raise CSVFormatError(
            MISSING_HEADERS_MESSAGE,
            details={"missing": sorted(missing), "headers": headers},
        )

    logger.debug(
        "CSV headers parsed",
        extra={"normalized_headers": headers},
    )

    records: list[CSVRecord] = []
    for row_number, line in enumerate(data_lines, start=1):
        values = _split_line(line, delimiter)
        if len(values) < len(headers):
            values = values + [""] * (len(headers) - len(values))
        data = {h: v for h, v in zip(headers, values) if h}
        records.append(CSVRecord(row_number=row_number, data=data))

    return DecodedCSV(headers=headers, records=records)


def iter_chunks(records: list[CSVRecord], size: int) -> list[list[CSVRecord]]:
    """Split records into consecutive slices of at most ``size`` rows."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [records[i:i + size] for i in range(0, len(records), size)]

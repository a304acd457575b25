"""
Row-level validation and normalization for contact imports.
"""

import re
from dataclasses import dataclass, field

from contact_import.contacts.schemas import ContactRow

# RFC 5322 simplified email pattern
EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)

NOMBRE_REQUIRED = "nombre: Nombre es obligatorio"
APELLIDO_REQUIRED = "apellido: Apellido es obligatorio"
EMAIL_INVALID = "email: Email inválido"


@dataclass
class RowValidation:
    """Outcome of validating one decoded row."""

    raw: dict[str, str]
    data: ContactRow | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.data is not None


def validate_email(email: str | None) -> bool:
    """Check an already-trimmed email. Absent values are valid."""
    if email is None:
        return True
    return EMAIL_PATTERN.match(email) is not None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def validate_row(raw: dict[str, str]) -> RowValidation:
    """Validate and normalize one CSV row.

    Every field is trimmed; blank optional fields become None. All rule
    violations are reported, in field order.

    Args:
        raw: Header-keyed raw values as decoded.

    Returns:
        RowValidation holding either the normalized row or the errors, plus
        the untouched raw values.
    """
    nombre = _clean(raw.get("nombre"))
    apellido = _clean(raw.get("apellido"))
    email = _clean(raw.get("email"))
    telefono = _clean(raw.get("telefono"))

    errors: list[str] = []
    if nombre is None:
        errors.append(NOMBRE_REQUIRED)
    if apellido is None:
        errors.append(APELLIDO_REQUIRED)
    if not validate_email(email):
        errors.append(EMAIL_INVALID)

    if errors:
        return RowValidation(raw=dict(raw), errors=errors)

    return RowValidation(
        raw=dict(raw),
        data=ContactRow(nombre=nombre, apellido=apellido, email=email, telefono=telefono),
    )

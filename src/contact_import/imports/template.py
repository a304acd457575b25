"""
Downloadable sample CSV for contact imports.
"""

CSV_TEMPLATE_HEADER = "nombre,apellido,email,telefono"
CSV_TEMPLATE_SAMPLE_ROWS = (
    "Juan,Pérez,juan.perez@email.com,+34123456789",
    "María,García,maria.garcia@email.com,+34987654321",
)


def get_csv_template() -> str:
    """Header line plus two example rows."""
    return "\n".join((CSV_TEMPLATE_HEADER, *CSV_TEMPLATE_SAMPLE_ROWS))

"""Generated documents."""

from accreda.reports.csaw import (
    CSAW_SKILL_FIELDS,
    CsawExportError,
    build_csaw_data,
    build_field_values,
    export_csaw,
    render_csaw_pdf,
)

__all__ = [
    "CSAW_SKILL_FIELDS",
    "CsawExportError",
    "build_csaw_data",
    "build_field_values",
    "export_csaw",
    "render_csaw_pdf",
]

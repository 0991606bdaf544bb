"""Tests for the CSAW PDF export (F5)."""

import fitz
import pytest

from accreda.core.catalog import skill_id_for
from accreda.db import saos_repository
from accreda.reports.csaw import (
    CSAW_SKILL_FIELDS,
    CsawExportError,
    build_csaw_data,
    build_field_values,
    export_csaw,
    render_csaw_pdf,
)

FIELD_NAMES = [
    "ApplicantName",
    "Name",
    "Employer1",
    "Situation1",
    "Action1",
    "Outcome 1",
    "VFName1",
    "VLName1",
    "Employer11",
    "Situation11",
]


def _template(field_names: list[str]) -> bytes:
    """Single-page PDF with one text field per name."""
    doc = fitz.open()
    page = doc.new_page()
    for i, name in enumerate(field_names):
        widget = fitz.Widget()
        widget.field_name = name
        widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
        widget.rect = fitz.Rect(50, 40 + i * 24, 400, 60 + i * 24)
        page.add_widget(widget)
    data = doc.tobytes()
    doc.close()
    return data


def _read_fields(pdf_bytes: bytes) -> dict[str, str]:
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        return {w.field_name: w.field_value for page in doc for w in page.widgets()}
    finally:
        doc.close()


def _sao(eit: str, code: str, title: str) -> None:
    saos_repository.insert_sao(
        eit, title, f"S {title}", f"A {title}", f"O {title}", f"E {title}", [skill_id_for(code)]
    )


class TestFieldMapping:
    def test_every_catalog_skill_has_an_index(self):
        assert len(CSAW_SKILL_FIELDS) == 22
        assert CSAW_SKILL_FIELDS[0] == ("1.1", 1)
        assert CSAW_SKILL_FIELDS[10] == ("2.1", 11)

    def test_first_sao_per_skill(self, make_eit):
        eit = make_eit(full_name="Alex Doe")
        _sao(eit, "1.1", "first")
        _sao(eit, "1.1", "second")
        saos_repository.insert_validator(eit, skill_id_for("1.1"), "Val", "Idator", "v@x.test")

        values = build_field_values(build_csaw_data(eit))

        assert values["ApplicantName"] == "Alex Doe"
        assert values["Situation1"] == "S first"
        assert values["Outcome 1"] == "O first"
        assert values["Employer1"] == "E first"
        assert values["VFName1"] == "Val"
        assert values["VLName1"] == "Idator"
        assert "Situation2" not in values

    def test_missing_profile(self, db):
        with pytest.raises(CsawExportError):
            build_csaw_data("nobody")


class TestRender:
    def test_fills_matching_fields(self):
        pdf = render_csaw_pdf(
            _template(FIELD_NAMES),
            {"ApplicantName": "Alex Doe", "Situation1": "Pumps", "NotInTemplate": "x"},
        )

        fields = _read_fields(pdf)
        assert fields["ApplicantName"] == "Alex Doe"
        assert fields["Situation1"] == "Pumps"
        assert "NotInTemplate" not in fields

    def test_invalid_template(self):
        with pytest.raises(CsawExportError):
            render_csaw_pdf(b"not a pdf", {})


class TestExport:
    def test_end_to_end(self, make_eit, tmp_path):
        eit = make_eit(full_name="Alex Doe")
        _sao(eit, "2.1", "talk")
        template = tmp_path / "csaw.pdf"
        template.write_bytes(_template(FIELD_NAMES))

        fields = _read_fields(export_csaw(eit, template))

        assert fields["Name"] == "Alex Doe"
        assert fields["Employer11"] == "E talk"
        assert fields["Situation11"] == "S talk"

    def test_template_missing(self, make_eit, tmp_path):
        with pytest.raises(CsawExportError):
            export_csaw(make_eit(), tmp_path / "missing.pdf")

    def test_default_template_path_from_config(self, make_eit):
        # No template at data/templates/csaw_v1.pdf under the test directory
        with pytest.raises(CsawExportError):
            export_csaw(make_eit())

"""CSAW PDF export.

Fills the AcroForm fields of the Competency Self-Assessment Worksheet
template from an EIT's profile, SAOs and validators.

Field names used by the template:
- ApplicantName, Name: applicant full name
- Employer{n}, Situation{n}, Action{n}, "Outcome {n}": first SAO linked to
  the n-th configured skill
- VFName{n}, VLName{n}: first validator of that SAO's skill

Dependencies:
- pymupdf (fitz)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import fitz
import structlog

from accreda.config.app_config import load_app_config
from accreda.core.catalog import all_skill_codes, skill_id_for
from accreda.db import profiles_repository, saos_repository, skills_repository
from accreda.db.saos_repository import SaoRecord, ValidatorRecord

logger = structlog.get_logger(__name__)

# (skill code, field index) pairs filled into the template, in form order
CSAW_SKILL_FIELDS: tuple[tuple[str, int], ...] = tuple(
    (code, index) for index, code in enumerate(all_skill_codes(), start=1)
)


class CsawExportError(Exception):
    """Error generating the CSAW PDF."""

    pass


@dataclass
class CsawSao:
    """SAO with the validators of its skills."""

    sao: SaoRecord
    validators: list[ValidatorRecord] = field(default_factory=list)


@dataclass
class CsawData:
    """Everything the worksheet needs, flattened."""

    full_name: str
    email: str
    skills: list[dict[str, Any]] = field(default_factory=list)
    saos: list[CsawSao] = field(default_factory=list)

    def first_sao_for(self, skill_id: str) -> CsawSao | None:
        for entry in self.saos:
            if skill_id in entry.sao.skill_ids:
                return entry
        return None


def build_csaw_data(eit_id: str) -> CsawData:
    """Collect profile, ranked skills, SAOs and validators of an EIT.

    Raises:
        CsawExportError: If the EIT has no profile
    """
    profile = profiles_repository.get_profile("eit_profiles", eit_id)
    if profile is None:
        raise CsawExportError(f"EIT profile not found: {eit_id}")

    ranks = {r.skill_id: r.rank for r in skills_repository.get_eit_skills(eit_id)}
    skills = [
        {"id": s.id, "code": s.code, "name": s.name, "category": s.category, "rank": ranks.get(s.id)}
        for s in skills_repository.get_catalog()
    ]

    validators = saos_repository.list_validators(eit_id)
    saos = []
    for sao in saos_repository.list_saos(eit_id):
        linked = [v for v in validators if v.skill_id in sao.skill_ids]
        saos.append(CsawSao(sao=sao, validators=linked))

    return CsawData(
        full_name=profile.full_name,
        email=profile.email,
        skills=skills,
        saos=saos,
    )


def build_field_values(data: CsawData) -> dict[str, str]:
    """Map template field names to values."""
    values = {
        "ApplicantName": data.full_name or "",
        "Name": data.full_name or "",
    }

    for code, n in CSAW_SKILL_FIELDS:
        entry = data.first_sao_for(skill_id_for(code))
        if entry is None:
            continue
        sao = entry.sao
        values[f"Employer{n}"] = sao.employer or ""
        values[f"Situation{n}"] = sao.situation or ""
        values[f"Action{n}"] = sao.action or ""
        values[f"Outcome {n}"] = sao.outcome or ""

        validator = next(
            (v for v in entry.validators if v.skill_id == skill_id_for(code)),
            entry.validators[0] if entry.validators else None,
        )
        if validator is not None:
            values[f"VFName{n}"] = validator.first_name or ""
            values[f"VLName{n}"] = validator.last_name or ""

    return values


def render_csaw_pdf(template_bytes: bytes, values: dict[str, str]) -> bytes:
    """Fill matching text widgets of the template.

    Fields absent from the template are logged and skipped.

    Raises:
        CsawExportError: If the template cannot be opened
    """
    try:
        doc = fitz.open(stream=template_bytes, filetype="pdf")
    except RuntimeError as e:
        raise CsawExportError(f"Could not open CSAW template: {e}") from e

    try:
        if doc.is_encrypted:
            raise CsawExportError("CSAW template is password-protected")

        filled = set()
        for page in doc:
            for widget in page.widgets():
                name = widget.field_name
                if name not in values or widget.field_type != fitz.PDF_WIDGET_TYPE_TEXT:
                    continue
                widget.field_value = values[name]
                widget.update()
                filled.add(name)

        missing = sorted(set(values) - filled)
        if missing:
            logger.warning("csaw.fields_missing", count=len(missing), fields=missing[:10])

        logger.info("csaw.rendered", filled=len(filled))
        return doc.tobytes()
    finally:
        doc.close()


def export_csaw(eit_id: str, template_path: Path | None = None) -> bytes:
    """Build the data bag for an EIT and render the worksheet.

    Raises:
        CsawExportError: If the profile or template is missing
    """
    path = template_path or Path(load_app_config().paths["csaw_template"])
    if not path.exists():
        raise CsawExportError(f"CSAW template not found: {path}")

    data = build_csaw_data(eit_id)
    values = build_field_values(data)
    logger.info("csaw.export_start", eit_id=eit_id, saos=len(data.saos))
    return render_csaw_pdf(path.read_bytes(), values)

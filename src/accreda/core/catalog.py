"""CSAW skill catalog.

The 22 competencies of the Competency-Based Assessment, grouped in six
categories. Codes are stable and double as catalog row ids
(``skill-<code>``).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CatalogCategory:
    """A category with its ordered (code, name) skills."""

    name: str
    skills: tuple[tuple[str, str], ...]


SKILL_CATALOG: tuple[CatalogCategory, ...] = (
    CatalogCategory(
        "Category 1 – Technical Competence",
        (
            ("1.1", "Regulations, Codes & Standards"),
            ("1.2", "Technical & Design Constraints"),
            ("1.3", "Risk Management for Technical Work"),
            ("1.4", "Application of Theory"),
            ("1.5", "Solution Techniques – Results Verification"),
            ("1.6", "Safety in Design & Technical Work"),
            ("1.7", "Systems & Their Components"),
            ("1.8", "Project or Asset Life-Cycle Awareness"),
            ("1.9", "Quality Assurance"),
            ("1.10", "Engineering Documentation"),
        ),
    ),
    CatalogCategory(
        "Category 2 – Communication",
        (
            ("2.1", "Oral Communication (English)"),
            ("2.2", "Written Communication (English)"),
            ("2.3", "Reading & Comprehension (English)"),
        ),
    ),
    CatalogCategory(
        "Category 3 – Project & Financial Management",
        (
            ("3.1", "Project Management Principles"),
            ("3.2", "Finances & Budget"),
        ),
    ),
    CatalogCategory(
        "Category 4 – Team Effectiveness",
        (("4.1", "Promote Team Effectiveness & Resolve Conflict"),),
    ),
    CatalogCategory(
        "Category 5 – Professional Accountability",
        (("5.1", "Professional Accountability (Ethics, Liability, Limits)"),),
    ),
    CatalogCategory(
        "Category 6 – Social, Economic, Environmental & Sustainability",
        (
            ("6.1", "Protection of the Public Interest"),
            ("6.2", "Benefits of Engineering to the Public"),
            ("6.3", "Role of Regulatory Bodies"),
            ("6.4", "Application of Sustainability Principles"),
            ("6.5", "Promotion of Sustainability"),
        ),
    ),
)


def skill_id_for(code: str) -> str:
    """Catalog row id for a skill code."""
    return f"skill-{code}"


def all_skill_codes() -> list[str]:
    """All skill codes in catalog order."""
    return [code for category in SKILL_CATALOG for code, _ in category.skills]

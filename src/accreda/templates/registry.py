"""Email template registry.

Renders the HTML email templates shipped with the package through a
jinja2 environment with autoescaping, so substituted values are always
HTML-escaped.

Usage:
    from accreda.templates.registry import render_template

    html = render_template(
        "connection_request",
        recipient_name="Sam",
        eit_name="Alex Doe",
    )
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import structlog
from jinja2 import Environment, FileSystemLoader, StrictUndefined

logger = structlog.get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "email"


@lru_cache(maxsize=1)
def get_environment() -> Environment:
    """Shared jinja2 environment for the email templates."""
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=True,
        undefined=StrictUndefined,
    )


def render_template(key: str, **variables: object) -> str:
    """Render a template with the given variables.

    Raises:
        jinja2.TemplateNotFound: If the template file doesn't exist
        jinja2.UndefinedError: If the template uses a variable not given
    """
    template = get_environment().get_template(f"{key}.html")
    return template.render(**variables)


def list_templates() -> list[str]:
    """List all available template keys."""
    if not TEMPLATES_DIR.exists():
        logger.warning("templates_dir_not_found", path=str(TEMPLATES_DIR))
        return []

    return sorted(path.stem for path in TEMPLATES_DIR.glob("*.html"))


def clear_cache() -> None:
    """Drop the environment and its compiled templates."""
    get_environment.cache_clear()

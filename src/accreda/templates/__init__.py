"""Email templates."""

from accreda.templates.registry import list_templates, render_template

__all__ = ["list_templates", "render_template"]

"""HTML template assets for the one-pager report."""

from pathlib import Path

from enricher.core.errors import NotFound

TEMPLATES_DIR = Path(__file__).parent / "templates"

CSS_STYLES = (TEMPLATES_DIR / "onepager.css").read_text(encoding="utf-8")

STYLES_PLACEHOLDER = "{{__styles__}}"


def load_template(template_id: str, templates_dir: Path = TEMPLATES_DIR) -> str:
    """Template HTML with the shared stylesheet inlined.

    Raises:
        NotFound: If no ``<template_id>.html`` exists.
    """
    path = templates_dir / f"{template_id}.html"
    if not path.is_file():
        raise NotFound(f"Report template not found: {template_id}")
    return path.read_text(encoding="utf-8").replace(STYLES_PLACEHOLDER, CSS_STYLES)

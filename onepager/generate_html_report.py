#!/usr/bin/env python3
"""Render a one-pager HTML report from a final field map.

Report generation hands a field map (canonical key -> cell text, plus asset
URLs under their image tags) to HtmlReportRenderer, which fills the template
and returns the path of the written report.

Usage:
    onepager fields.json [--template onepager] [--out reports/]
"""

import argparse
import json
import re
import sys
from pathlib import Path

from onepager.define_html_template import TEMPLATES_DIR, load_template
from onepager.render_placeholders import apply_images, fill_placeholders, image_tags


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "report"


def generate_html(template: str, field_map: dict[str, str]) -> str:
    """Fill a template: images first, then text placeholders."""
    images = {tag: field_map.get(tag) for tag in image_tags(template)}
    return fill_placeholders(apply_images(template, images), field_map)


class HtmlReportRenderer:
    """Report renderer writing one HTML file per entity."""

    def __init__(self, output_dir: str | Path, templates_dir: str | Path = TEMPLATES_DIR):
        self.output_dir = Path(output_dir)
        self.templates_dir = Path(templates_dir)

    def render_report(self, template_id: str, field_map: dict[str, str]) -> str:
        """Render and write the report.

        Returns:
            Locator of the written report (its file path).

        Raises:
            NotFound: If the template does not exist.
        """
        html = generate_html(load_template(template_id, self.templates_dir), field_map)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"{slugify(field_map.get('name', ''))}-{template_id}.html"
        path.write_text(html, encoding="utf-8")
        return str(path)


def main():
    """CLI entry point - render a field map JSON file and open it in the browser."""
    import webbrowser

    parser = argparse.ArgumentParser(description="Render a one-pager from a JSON field map")
    parser.add_argument("fields", help="JSON file: canonical field key -> text")
    parser.add_argument("--template", default="onepager", help="Template id (default: onepager)")
    parser.add_argument("--out", default="reports", help="Output directory (default: reports/)")
    parser.add_argument("--no-open", action="store_true", help="Do not open the report in a browser")
    args = parser.parse_args()

    json_path = Path(args.fields)
    if not json_path.exists():
        print(f"Error: {json_path} not found")
        sys.exit(1)

    print(f"Loading {json_path}...")
    with open(json_path, encoding="utf-8") as f:
        field_map = {k: str(v) for k, v in json.load(f).items() if v is not None}

    locator = HtmlReportRenderer(args.out).render_report(args.template, field_map)
    print(f"Report: {locator}")

    if not args.no_open:
        print("Opening in browser...")
        webbrowser.open(Path(locator).resolve().as_uri())


if __name__ == "__main__":
    main()

"""Tests for the onepager report renderer.

Tests:
- {{key}} substitution, escaping and blanking
- Image placeholders pointed at assets or removed
- Template loading and HtmlReportRenderer output
"""

import pytest

from enricher.core.errors import NotFound
from onepager.define_html_template import STYLES_PLACEHOLDER, load_template
from onepager.generate_html_report import HtmlReportRenderer, generate_html, slugify
from onepager.render_placeholders import apply_images, fill_placeholders, image_tags


class TestFillPlaceholders:

    def test_known_keys_are_filled(self):
        assert fill_placeholders("<h1>{{ name }}</h1>", {"name": "Acme"}) == "<h1>Acme</h1>"

    def test_unmatched_placeholders_are_blanked(self):
        assert fill_placeholders("<p>{{arr}}</p><p>{{name}}</p>", {"name": ""}) == "<p></p><p></p>"

    def test_values_are_escaped_with_line_breaks(self):
        html = fill_placeholders("{{risks}}", {"risks": "A & B\n\nC <D>"})
        assert html == "A &amp; B<br><br>C &lt;D&gt;"


class TestApplyImages:

    def test_src_is_set(self):
        html = apply_images('<img class="logo" alt="logo" src="">', {"logo": "https://x.example/a.png?s=1&t=2"})
        assert html == '<img class="logo" alt="logo" src="https://x.example/a.png?s=1&amp;t=2">'

    def test_src_is_added_when_missing(self):
        html = apply_images('<img alt="flag">', {"flag": "https://flags.example/DE.png"})
        assert html == '<img alt="flag" src="https://flags.example/DE.png">'

    def test_tag_removed_without_asset(self):
        html = apply_images('<span><img alt="flag" src=""> DE</span>', {"flag": None})
        assert html == "<span> DE</span>"

    def test_untagged_images_left_alone(self):
        html = '<img src="static.png">'
        assert apply_images(html, {}) == html

    def test_image_tags(self):
        assert image_tags('<img alt="logo"><img alt=\'flag\' src=""><img src="x">') == {"logo", "flag"}


class TestTemplates:

    def test_default_template_inlines_styles(self):
        template = load_template("onepager")
        assert STYLES_PLACEHOLDER not in template
        assert image_tags(template) == {"logo", "flag"}

    def test_unknown_template_raises_not_found(self):
        with pytest.raises(NotFound):
            load_template("does-not-exist")

    def test_generate_html(self):
        html = generate_html(load_template("onepager"), {
            "name": "Acme",
            "companySummary": "Makes anvils.",
            "logo": "https://logo.example/acme.png",
        })
        assert "<h1>Acme</h1>" in html
        assert "Makes anvils." in html
        assert 'src="https://logo.example/acme.png"' in html
        assert 'alt="flag"' not in html
        assert "{{" not in html


class TestHtmlReportRenderer:

    @pytest.mark.parametrize("name, slug", [("Acme Corp.", "acme-corp"), ("  ", "report"), ("Ünïcode AG", "n-code-ag")])
    def test_slugify(self, name, slug):
        assert slugify(name) == slug

    def test_writes_report_and_returns_locator(self, tmp_path):
        renderer = HtmlReportRenderer(tmp_path / "reports")

        locator = renderer.render_report("onepager", {"name": "Acme Corp", "sector": "Industrial"})

        assert locator == str(tmp_path / "reports" / "acme-corp-onepager.html")
        html = (tmp_path / "reports" / "acme-corp-onepager.html").read_text(encoding="utf-8")
        assert "Industrial" in html

    def test_custom_templates_dir(self, tmp_path):
        (tmp_path / "mini.html").write_text("<p>{{name}}</p>", encoding="utf-8")
        renderer = HtmlReportRenderer(tmp_path / "out", templates_dir=tmp_path)

        locator = renderer.render_report("mini", {"name": "Globex"})

        assert open(locator, encoding="utf-8").read() == "<p>Globex</p>"

"""Tests for card HTML rendering (Jinja2 templates and filters)."""

import pytest

from card_studio.schemas.card import CardOptions
from card_studio.schemas.product import Product
from card_studio.services.card_templates import (
    TEMPLATE_NAMES,
    TemplateRenderError,
    format_brl,
    format_number,
    render_card_html,
)


class TestFilters:
    def test_format_brl(self):
        assert format_brl(1234.5) == "R$ 1.234,50"
        assert format_brl(79.9) == "R$ 79,90"
        assert format_brl(None) is None

    def test_format_number(self):
        assert format_number(1250) == "1.250"
        assert format_number(1000000) == "1.000.000"
        assert format_number("n/a") == "n/a"


class TestRenderCard:
    """Discount and badge rendering across templates."""

    @pytest.mark.parametrize("template", TEMPLATE_NAMES)
    def test_every_template_shows_name_and_price(self, sample_product, template):
        html = render_card_html(sample_product, "Ótimo som", CardOptions(template=template))
        assert "Fone de Ouvido Bluetooth Pro" in html
        assert "R$ 80,00" in html

    @pytest.mark.parametrize("template", ["default", "modern", "bold"])
    def test_description_lines_rendered(self, sample_product, template):
        html = render_card_html(sample_product, "Ótimo som\nBateria longa", CardOptions(template=template))
        assert "Ótimo som<br>Bateria longa<br>" in html

    def test_badge_shows_discount(self, sample_product):
        html = render_card_html(sample_product, "", CardOptions())
        assert 'class="badge"' in html
        assert "-20%" in html
        assert "R$ 100,00" in html

    def test_badge_hidden_when_disabled(self, sample_product):
        html = render_card_html(sample_product, "", CardOptions(showBadge=False))
        assert 'class="badge"' not in html

    def test_no_badge_without_discount(self):
        product = Product(itemId="5", productName="Caneca", price=30.0)
        html = render_card_html(product, "", CardOptions())
        assert 'class="badge"' not in html

    def test_bold_headline(self, sample_product):
        html = render_card_html(sample_product, "", CardOptions(template="bold"))
        assert "20% OFF" in html

    def test_dimensions_and_colors(self, sample_product):
        options = CardOptions(format="square", colorScheme="light", accentColor="#123abc")
        html = render_card_html(sample_product, "", options)
        assert "1080px" in html
        assert "#123abc" in html
        assert "#ffffff" in html

    def test_description_is_escaped(self, sample_product):
        html = render_card_html(sample_product, "<script>alert(1)</script>", CardOptions())
        assert "<script>alert(1)</script>" not in html

    def test_unknown_template(self, sample_product):
        options = CardOptions()
        options.template = "neon"
        with pytest.raises(TemplateRenderError):
            render_card_html(sample_product, "", options)

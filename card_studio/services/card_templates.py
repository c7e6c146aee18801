"""HTML card templates (Jinja2).

Templates live in ``card_studio/templates/cards``; each extends
``base.html`` and is rendered at the pixel size of the requested format.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi.templating import Jinja2Templates
from jinja2 import TemplateNotFound

from card_studio.schemas.card import CardOptions
from card_studio.schemas.product import Product

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "cards"
TEMPLATE_NAMES = ("default", "modern", "minimal", "bold")

COLOR_SCHEMES: Dict[str, Dict[str, str]] = {
    "dark": {
        "background": "#0f0f0f",
        "surface": "#1c1c1e",
        "text": "#ffffff",
        "muted": "#9a9a9a",
    },
    "light": {
        "background": "#ffffff",
        "surface": "#f4f4f5",
        "text": "#111111",
        "muted": "#6b6b6b",
    },
}

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


# Custom Jinja2 filters
def format_number(value):
    """Format number with pt-BR thousands separator."""
    try:
        return f"{int(value):,}".replace(",", ".")
    except (TypeError, ValueError):
        return value


def format_brl(value):
    """Format price as ``R$ 1.234,56``."""
    try:
        formatted = f"{float(value):,.2f}"
    except (TypeError, ValueError):
        return value
    return "R$ " + formatted.replace(",", "_").replace(".", ",").replace("_", ".")


templates.env.filters["format_number"] = format_number
templates.env.filters["brl"] = format_brl


class TemplateRenderError(Exception):
    """Unknown template or template failed to render."""


def render_card_html(
    product: Product,
    description: Optional[str],
    options: Optional[CardOptions] = None,
) -> str:
    options = options or CardOptions()
    if options.template not in TEMPLATE_NAMES:
        raise TemplateRenderError(f"Unknown template '{options.template}'")

    width, height = options.dimensions
    context: Dict[str, Any] = {
        "product": product,
        "description": description or "",
        "description_lines": [line for line in (description or "").splitlines()],
        "template": options.template,
        "layout": options.format,
        "width": width,
        "height": height,
        "colors": COLOR_SCHEMES[options.color_scheme],
        "accent_color": options.accent_color,
        "show_badge": options.show_badge,
    }
    try:
        return templates.get_template(f"{options.template}.html").render(context)
    except TemplateNotFound as exc:
        raise TemplateRenderError(f"Template file missing: {exc.name}") from exc

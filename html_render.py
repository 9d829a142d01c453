from pathlib import Path
from typing import Dict, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from fontfit import DEFAULT_INITIAL_SIZE, DEFAULT_MAX_ITERATIONS, DEFAULT_MIN_SIZE, DEFAULT_STEP
from items import Item
from layout import DEFAULT_ITEMS_PER_PAGE, NAME_BOX_HEIGHT, NAME_BOX_WIDTH, TAG_HEIGHT, TAG_WIDTH, build_pages
from logger import get_logger
from pricing import format_number
from tag_settings import TagSettings

logger = get_logger(__name__)

# Resolve template directory relative to this file
TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
env.filters["num"] = format_number

FONT_FAMILIES: Dict[str, str] = {
    "montserrat": "'Montserrat', sans-serif",
    "nunito": "'Nunito', sans-serif",
    "inter": "'Inter', sans-serif",
    "mont": "'Mont', 'Montserrat', sans-serif",
}

PAGE_WIDTHS = {"A4": "210mm", "A3": "297mm", "Letter": "8.5in"}


def font_family(font: str) -> str:
    return FONT_FAMILIES.get(font, FONT_FAMILIES["montserrat"])


def _context(items: Sequence[Item], settings: TagSettings, per_page: int) -> dict:
    pages = build_pages(items, settings, per_page)
    return {
        "pages": pages,
        "font_family": font_family(settings.current_font),
        "discount_lines": settings.discount_text.split("\n")[:2],
        "tag": {"width": TAG_WIDTH, "height": TAG_HEIGHT},
        "name_box": {"width": NAME_BOX_WIDTH, "height": NAME_BOX_HEIGHT},
        "fit": {
            "initial": DEFAULT_INITIAL_SIZE,
            "min": DEFAULT_MIN_SIZE,
            "step": DEFAULT_STEP,
            "max_iterations": DEFAULT_MAX_ITERATIONS,
        },
    }


def render_price_tags_html(
    items: Sequence[Item],
    settings: TagSettings,
    per_page: int = DEFAULT_ITEMS_PER_PAGE,
) -> str:
    """Только страницы с ценниками и скрипт подгонки шрифта, без обёртки документа."""
    template = env.get_template("price_tags.html")
    return template.render(**_context(items, settings, per_page))


def render_html_document(
    items: Sequence[Item],
    settings: TagSettings,
    *,
    page_format: str = "A4",
    margin: str = "12mm",
    per_page: int = DEFAULT_ITEMS_PER_PAGE,
) -> str:
    """Готовый к печати HTML: его можно отдать headless-браузеру для PDF."""
    if page_format not in PAGE_WIDTHS:
        raise ValueError(f"Unknown page format: {page_format!r}")
    template = env.get_template("document.html")
    html = template.render(
        body=render_price_tags_html(items, settings, per_page),
        page_format=page_format,
        page_width=PAGE_WIDTHS[page_format],
        margin=margin,
    )
    logger.info("Rendered HTML document with %d tag(s), format %s", len(items), page_format)
    return html

import io
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from PIL import Image
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A3, A4, letter
from reportlab.lib.units import cm, inch, mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from fontfit import Box, FitParams, FontFitter
from items import Item
from layout import (
    DEFAULT_ITEMS_PER_PAGE,
    GRID_COLUMNS,
    NAME_BOX_HEIGHT,
    NAME_BOX_WIDTH,
    TAG_HEIGHT,
    TAG_WIDTH,
    Page,
    TagView,
    build_pages,
)
from logger import get_logger
from pricing import format_number
from tag_settings import TagSettings

logger = get_logger(__name__)


# -------------------------
# Пути
# -------------------------
BASE_DIR = Path(__file__).resolve().parent
FONTS_DIR = BASE_DIR / "fonts"


# -------------------------
# Формат страницы
# -------------------------
PAGE_SIZES = {"A4": A4, "A3": A3, "Letter": letter}

GRID_GAP = 8 * mm

_LENGTH_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(mm|cm|in|px|pt)?\s*$", re.I)
_UNITS = {"mm": mm, "cm": cm, "in": inch, "px": 0.75, "pt": 1.0}


def parse_length(value: str) -> float:
    """'12mm' / '0.5in' / '20px' / '10pt' / '1cm' -> пункты PDF. Без единиц считаем px."""
    m = _LENGTH_RE.match(value or "")
    if not m:
        raise ValueError(f"Bad length: {value!r}")
    number, unit = m.groups()
    return float(number) * _UNITS[(unit or "px").lower()]


def page_size(page_format: str) -> Tuple[float, float]:
    if page_format not in PAGE_SIZES:
        raise ValueError(f"Unknown page format: {page_format!r}")
    return PAGE_SIZES[page_format]


# -------------------------
# Шрифты
# -------------------------
@dataclass
class Fonts:
    medium: str
    bold: str


FALLBACK_FONTS = Fonts(medium="Helvetica", bold="Helvetica-Bold")

# семейство -> (medium, bold); mont без своих файлов берёт montserrat
FONT_FILES = {
    "montserrat": ("Montserrat-Medium.ttf", "Montserrat-Bold.ttf"),
    "nunito": ("Nunito-Medium.ttf", "Nunito-Bold.ttf"),
    "inter": ("Inter-Medium.ttf", "Inter-Bold.ttf"),
    "mont": ("Mont-SemiBold.ttf", "Mont-Heavy.ttf"),
}


def register_fonts(fonts_dir: Optional[Path] = None) -> Dict[str, Fonts]:
    """Регистрирует TTF из fonts_dir. Если файлов нет, берём Helvetica и пишем предупреждение в лог."""
    fonts_dir = Path(fonts_dir or FONTS_DIR)
    out: Dict[str, Fonts] = {}

    for family, (medium_file, bold_file) in FONT_FILES.items():
        medium_path = fonts_dir / medium_file
        bold_path = fonts_dir / bold_file
        if not (medium_path.exists() and bold_path.exists()):
            continue
        medium_name = f"{family.title()}-Medium"
        bold_name = f"{family.title()}-Bold"
        pdfmetrics.registerFont(TTFont(medium_name, str(medium_path)))
        pdfmetrics.registerFont(TTFont(bold_name, str(bold_path)))
        out[family] = Fonts(medium=medium_name, bold=bold_name)

    if "mont" not in out and "montserrat" in out:
        out["mont"] = out["montserrat"]

    for family in FONT_FILES:
        if family not in out:
            logger.warning("Font files for %r not found in %s, using Helvetica", family, fonts_dir)
            out[family] = FALLBACK_FONTS

    return out


def fonts_for(fonts: Optional[Dict[str, Fonts]], family: str) -> Fonts:
    if not fonts:
        return FALLBACK_FONTS
    return fonts.get(family) or fonts.get("montserrat") or FALLBACK_FONTS


# -------------------------
# Утилиты
# -------------------------
def safe_filename(name: str, max_len: int = 80) -> str:
    name = (name or "").strip()
    name = re.sub(r"[\\/:*?\"<>|\n\r\t]+", " ", name)
    name = re.sub(r"\s+", " ", name).strip()
    if not name:
        name = "price_tags"
    if len(name) > max_len:
        name = name[:max_len].rstrip()
    return name


def hex_to_rgb(color: str) -> Tuple[float, float, float]:
    color = color.lstrip("#")
    return tuple(int(color[i:i + 2], 16) / 255 for i in (0, 2, 4))


def hex_to_rgb255(color: str) -> Tuple[int, int, int]:
    color = color.lstrip("#")
    return tuple(int(color[i:i + 2], 16) for i in (0, 2, 4))


def text_width(font_name: str, size: float, text: str) -> float:
    return pdfmetrics.stringWidth(text, font_name, size)


class ReportlabMeasurer:
    """Измеритель для fontfit: ширина строки по метрикам шрифта, высота равна size * line_height."""

    def __init__(self, font_name: str, line_height: float = 1.2):
        self.font_name = font_name
        self.line_height = line_height

    def ready(self) -> bool:
        try:
            pdfmetrics.getFont(self.font_name)
        except KeyError:
            return False
        return True

    def overflows(self, text: str, font_size: float, box: Box) -> bool:
        if text_width(self.font_name, font_size, text) > box.width:
            return True
        return font_size * self.line_height > box.height


def wrap_lines(text: str, font_name: str, size: float, max_width: float, max_lines: int) -> Optional[List[str]]:
    """Переносы по словам; None, если не влезает в max_lines строк."""
    words = re.sub(r"\s+", " ", (text or "").strip()).split(" ")
    if words == [""]:
        return None
    lines: List[str] = []
    current = ""
    for w in words:
        if text_width(font_name, size, w) > max_width:
            return None
        test = (current + " " + w).strip() if current else w
        if text_width(font_name, size, test) <= max_width:
            current = test
        else:
            lines.append(current)
            current = w
    if current:
        lines.append(current)
    return lines if len(lines) <= max_lines else None


def fit_caption(
    text: str,
    font_name: str,
    max_size: float,
    min_size: float,
    max_width: float,
    max_lines: int,
) -> Tuple[float, List[str]]:
    """Подпись к скидке: явные переводы строк сохраняются, не больше max_lines строк."""
    source = [line.strip() for line in (text or "").split("\n") if line.strip()][:max_lines]
    if not source:
        return max_size, []

    size = max_size
    while size >= min_size:
        lines: List[str] = []
        for chunk in source:
            wrapped = wrap_lines(chunk, font_name, size, max_width, max_lines)
            if wrapped is None:
                break
            lines.extend(wrapped)
        else:
            if len(lines) <= max_lines:
                return size, lines
        size -= 0.5

    return min_size, source


# -------------------------
# Отрисовка ценника
# -------------------------
def _clip_rect(c: canvas.Canvas, x: float, y: float, w: float, h: float):
    p = c.beginPath()
    p.rect(x, y, w, h)
    c.clipPath(p, stroke=0, fill=0)


def _draw_background(c: canvas.Canvas, tag: TagView):
    theme = tag.theme
    c.saveState()
    _clip_rect(c, 0, 0, TAG_WIDTH, TAG_HEIGHT)
    if theme.is_solid:
        c.setFillColorRGB(*hex_to_rgb(theme.start))
        c.rect(0, 0, TAG_WIDTH, TAG_HEIGHT, stroke=0, fill=1)
    else:
        # диагональ снизу-слева вверх-вправо
        c.linearGradient(13.75, 1.59, 148.83, 99.58, (HexColor(theme.start), HexColor(theme.end)), extend=True)
    c.restoreState()

    if tag.needs_border:
        c.setStrokeColorRGB(*hex_to_rgb(tag.border_color))
        c.setLineWidth(1.5 if tag.design_type == "white" else 1)
        c.rect(0, 0, TAG_WIDTH, TAG_HEIGHT, stroke=1, fill=0)


def _draw_ribbon(c: canvas.Canvas, tag: TagView, fonts: Fonts):
    base = 52 if tag.label == "NEW" else 48
    width = text_width(fonts.bold, base, tag.label)
    size = min(base, base * (TAG_HEIGHT - 6) / width) if width else base

    c.saveState()
    c.setFillColorRGB(*hex_to_rgb(tag.label_color))
    c.setFont(fonts.bold, size)
    # текст снизу вверх вдоль правого края, частично уходит за обрез
    c.translate(TAG_WIDTH + size * 0.18, 4)
    c.rotate(90)
    c.drawString(0, 0, tag.label)
    c.restoreState()


def _draw_name(c: canvas.Canvas, tag: TagView, fonts: Fonts, fitter: FontFitter):
    text = tag.name.upper()
    size = fitter.ensure(f"name-{tag.item.id}", text, Box(NAME_BOX_WIDTH, NAME_BOX_HEIGHT))

    top = TAG_HEIGHT - 8
    c.saveState()
    _clip_rect(c, 10, top - NAME_BOX_HEIGHT, NAME_BOX_WIDTH, NAME_BOX_HEIGHT)
    c.setFont(fonts.medium, size)
    c.drawString(10, top - NAME_BOX_HEIGHT / 2 - size * 0.35, text)
    c.restoreState()


def _draw_single_price(c: canvas.Canvas, tag: TagView, fonts: Fonts, price_fitter: FontFitter, discount_text: str):
    text = format_number(tag.item.price)
    box = Box(TAG_WIDTH - 10, 60)
    size = price_fitter.ensure(f"price-{tag.item.id}", text, box)

    # со скидкой цена поднимается, освобождая место под вторую строку
    center_y = 51 if tag.show_discount else 43.5
    c.setFont(fonts.bold, size)
    c.drawCentredString(TAG_WIDTH / 2, center_y - size * 0.35, text)

    if not tag.show_discount:
        return

    c.saveState()
    c.setFillAlpha(0.8)
    c.setFont(fonts.medium, 18)
    c.drawString(10, 8, format_number(tag.discount_price))

    size_t, lines = fit_caption(discount_text, fonts.medium, 8, 5, 90, 2)
    c.setFont(fonts.medium, size_t)
    y = 8 + size_t * (len(lines) - 1)
    for line in lines:
        c.drawString(65, y, line)
        y -= size_t
    c.restoreState()


def _draw_multi_tier(c: canvas.Canvas, tag: TagView, fonts: Fonts):
    item = tag.item
    right = TAG_WIDTH - 14
    rows = [
        # (подпись, y подписи, размер цены, значение, y цены)
        ("от 3 шт.", 56, 26, item.price_from_3, 54),
        ("2 шт.", 36, 20, item.price_for_2, 34),
        ("1 шт.", 18, 16, item.price, 16),
    ]
    c.setFont(fonts.medium, 6)
    c.drawString(10, 66, "При покупке:")
    for caption, caption_y, size, value, value_y in rows:
        c.setFont(fonts.medium, 10)
        c.drawString(10, caption_y, caption)
        c.setFont(fonts.bold, size)
        c.drawRightString(right, value_y, format_number(value))


def _draw_cut_lines(c: canvas.Canvas, tag: TagView):
    c.saveState()
    c.setStrokeColorRGB(*hex_to_rgb(tag.cut_line_color))
    c.setLineWidth(0.75)
    c.setDash(12, 3)
    c.line(0, 0, TAG_WIDTH, 0)
    c.line(0, TAG_HEIGHT, TAG_WIDTH, TAG_HEIGHT)
    c.setDash(8, 3)
    c.line(0, 0, 0, TAG_HEIGHT)
    c.line(TAG_WIDTH, 0, TAG_WIDTH, TAG_HEIGHT)
    c.restoreState()


def draw_tag(
    c: canvas.Canvas,
    tag: TagView,
    fonts: Fonts,
    discount_text: str,
    name_fitter: FontFitter,
    price_fitter: FontFitter,
):
    """Рисует ценник в локальных координатах 0..TAG_WIDTH x 0..TAG_HEIGHT."""
    c.saveState()
    _clip_rect(c, 0, 0, TAG_WIDTH, TAG_HEIGHT)
    _draw_background(c, tag)

    c.setFillColorRGB(*hex_to_rgb(tag.theme.text_color))
    if tag.label:
        _draw_ribbon(c, tag, fonts)
        c.setFillColorRGB(*hex_to_rgb(tag.theme.text_color))

    _draw_name(c, tag, fonts, name_fitter)
    if tag.multi_tier:
        _draw_multi_tier(c, tag, fonts)
    else:
        _draw_single_price(c, tag, fonts, price_fitter, discount_text)
    c.restoreState()

    _draw_cut_lines(c, tag)


def _grid_scale(page_w: float, page_h: float, margin: float, rows: int) -> float:
    need_w = GRID_COLUMNS * TAG_WIDTH + (GRID_COLUMNS - 1) * GRID_GAP
    need_h = rows * TAG_HEIGHT + (rows - 1) * GRID_GAP
    avail_w = page_w - 2 * margin
    avail_h = page_h - 2 * margin
    if avail_w <= 0 or avail_h <= 0:
        raise ValueError("Page margin leaves no printable area")
    return min(1.0, avail_w / need_w, avail_h / need_h)


def draw_page(
    c: canvas.Canvas,
    page: Page,
    page_w: float,
    page_h: float,
    fonts: Fonts,
    discount_text: str,
    margin: float,
    per_page: int,
    fitters: Tuple[FontFitter, FontFitter],
):
    rows = math.ceil(per_page / GRID_COLUMNS)
    scale = _grid_scale(page_w, page_h, margin, rows)

    grid_w = (GRID_COLUMNS * TAG_WIDTH + (GRID_COLUMNS - 1) * GRID_GAP) * scale
    x0 = (page_w - grid_w) / 2
    y_top = page_h - margin

    for i, tag in enumerate(page.tags):
        row, col = divmod(i, GRID_COLUMNS)
        x = x0 + col * (TAG_WIDTH + GRID_GAP) * scale
        y = y_top - (row * (TAG_HEIGHT + GRID_GAP) + TAG_HEIGHT) * scale
        c.saveState()
        c.translate(x, y)
        c.scale(scale, scale)
        draw_tag(c, tag, fonts, discount_text, *fitters)
        c.restoreState()


# -------------------------
# PDF генерация
# -------------------------
def make_pdf_price_tags(
    items: Sequence[Item],
    settings: TagSettings,
    fonts: Optional[Dict[str, Fonts]] = None,
    *,
    page_format: str = "A4",
    margin: str = "12mm",
    per_page: int = DEFAULT_ITEMS_PER_PAGE,
) -> bytes:
    """Сетка ценников по per_page штук на лист. Пустой список даёт документ без страниц."""
    family = fonts_for(fonts, settings.current_font)
    pages = build_pages(items, settings, per_page)

    name_fitter = FontFitter(ReportlabMeasurer(family.medium), FitParams(initial_size=16, min_size=4))
    price_fitter = FontFitter(
        ReportlabMeasurer(family.bold, line_height=1.0),
        FitParams(initial_size=52, min_size=20, step=1, max_iterations=40),
    )

    buff = io.BytesIO()
    page_w, page_h = page_size(page_format)
    c = canvas.Canvas(buff, pagesize=(page_w, page_h))
    c.setTitle("Ценники")
    margin_pt = parse_length(margin)

    for page in pages:
        draw_page(c, page, page_w, page_h, family, settings.discount_text, margin_pt, per_page, (name_fitter, price_fitter))
        c.showPage()

    c.save()
    logger.info("Rendered %d tag(s) on %d page(s), format %s", len(items), len(pages), page_format)
    return buff.getvalue()


# -------------------------
# QR-плакат "подписывайся на канал"
# -------------------------
QR_FG_HEX = "000000"
QR_BG_HEX = "FFFFFF"
POSTER_GRADIENT = ("#f2676c", "#ee2a7b", "#92278f")
POSTER_LINES = ("ПОДПИСЫВАЙСЯ", "НА НАШ", "ТЕЛЕГРАМ", "КАНАЛ")


def make_styled_qr_png(data: str, size_px: int = 300) -> bytes:
    import qrcode
    from qrcode.constants import ERROR_CORRECT_H
    from qrcode.image.styledpil import StyledPilImage
    from qrcode.image.styles.colormasks import SolidFillColorMask
    from qrcode.image.styles.moduledrawers.pil import RoundedModuleDrawer

    qr = qrcode.QRCode(version=None, error_correction=ERROR_CORRECT_H, box_size=10, border=1)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(
        image_factory=StyledPilImage,
        module_drawer=RoundedModuleDrawer(),
        color_mask=SolidFillColorMask(back_color=hex_to_rgb255(QR_BG_HEX), front_color=hex_to_rgb255(QR_FG_HEX)),
    ).convert("RGBA")

    img = img.resize((size_px, size_px), Image.NEAREST)
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


def make_pdf_qr_poster(fonts: Fonts, link: str, page_format: str = "A4") -> bytes:
    w, h = page_size(page_format)
    buff = io.BytesIO()
    c = canvas.Canvas(buff, pagesize=(w, h))
    c.setTitle("QR")

    radius = 75 * mm
    cx, cy = w / 2, h / 2

    c.saveState()
    p = c.beginPath()
    p.circle(cx, cy, radius)
    c.clipPath(p, stroke=0, fill=0)
    c.linearGradient(
        cx - radius, cy + radius, cx + radius, cy - radius,
        tuple(HexColor(x) for x in POSTER_GRADIENT),
        positions=(0, 0.5, 1),
        extend=True,
    )
    c.restoreState()

    size = 8 * mm
    max_width = 75 * mm
    c.setFillColorRGB(1, 1, 1)
    y = cy + radius * 0.55
    for line in POSTER_LINES:
        width = text_width(fonts.bold, size, line)
        line_size = min(size, size * max_width / width) if width else size
        c.setFont(fonts.bold, line_size)
        c.drawCentredString(cx, y, line)
        y -= size

    qr_size = 50 * mm
    pad = 2 * mm
    qr_left = cx - qr_size / 2
    qr_bottom = cy - radius * 0.78
    c.roundRect(qr_left - pad, qr_bottom - pad, qr_size + 2 * pad, qr_size + 2 * pad, 5 * mm, stroke=0, fill=1)

    qr_png = make_styled_qr_png(link)
    c.drawImage(ImageReader(io.BytesIO(qr_png)), qr_left, qr_bottom, qr_size, qr_size, mask="auto")

    c.save()
    return buff.getvalue()

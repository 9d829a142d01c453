import pytest
from reportlab.lib.units import inch, mm

from items import Item
from render import (
    FALLBACK_FONTS,
    ReportlabMeasurer,
    fit_caption,
    fonts_for,
    make_pdf_price_tags,
    make_pdf_qr_poster,
    make_styled_qr_png,
    page_size,
    parse_length,
    register_fonts,
    safe_filename,
)
from fontfit import Box
from tag_settings import TagSettings


def _items(n):
    return [Item(id=i + 1, data=f"Green tea {i}", price=2999, discount_price=2849) for i in range(n)]


@pytest.mark.parametrize("raw, expected", [
    ("12mm", 12 * mm),
    ("1cm", 10 * mm),
    ("0.5in", 0.5 * inch),
    ("20px", 15.0),
    ("10pt", 10.0),
    ("8", 6.0),
])
def test_parse_length(raw, expected):
    assert parse_length(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "abc", "-5mm", "12 furlongs"])
def test_parse_length_rejects(raw):
    with pytest.raises(ValueError):
        parse_length(raw)


def test_page_size():
    assert page_size("A4") == pytest.approx((210 * mm, 297 * mm), rel=1e-3)
    with pytest.raises(ValueError):
        page_size("B5")


def test_missing_fonts_fall_back_to_helvetica(tmp_path):
    fonts = register_fonts(tmp_path)
    assert fonts["montserrat"] == FALLBACK_FONTS
    assert fonts_for(fonts, "inter") == FALLBACK_FONTS
    assert fonts_for(None, "nunito") == FALLBACK_FONTS


def test_measurer_ready_for_builtin_font():
    measurer = ReportlabMeasurer("Helvetica")
    assert measurer.ready()
    assert measurer.overflows("W" * 100, 16, Box(146, 24))
    assert not measurer.overflows("TEA", 16, Box(146, 24))
    assert not ReportlabMeasurer("NoSuchFont-Bold").ready()


def test_fit_caption_keeps_two_lines():
    size, lines = fit_caption("subscriber price\nin our channel", "Helvetica", 8, 5, 90, 2)
    assert lines == ["subscriber price", "in our channel"]
    assert 5 <= size <= 8


@pytest.mark.parametrize("settings", [
    TagSettings(discount_text="members price"),
    TagSettings(design=True, design_type="white", discount_text="members price"),
    TagSettings(design_type="new", show_theme_labels=True, discount_text="members price"),
])
def test_pdf_price_tags(settings):
    pdf = make_pdf_price_tags(_items(20), settings)
    assert pdf.startswith(b"%PDF")
    assert b"%%EOF" in pdf[-64:]


@pytest.mark.parametrize("page_format", ["A4", "A3", "Letter"])
def test_pdf_page_formats(page_format):
    pdf = make_pdf_price_tags(_items(3), TagSettings(discount_text="x"), page_format=page_format, margin="0.5in")
    assert pdf.startswith(b"%PDF")


def test_pdf_multi_tier():
    items = [Item(id=1, data="Tea", price=1000, discount_price=1000, price_for_2=900, price_from_3=800)]
    assert make_pdf_price_tags(items, TagSettings()).startswith(b"%PDF")


def test_pdf_empty_list():
    assert make_pdf_price_tags([], TagSettings()).startswith(b"%PDF")


def test_qr_png_and_poster():
    png = make_styled_qr_png("https://t.me/example", size_px=120)
    assert png.startswith(b"\x89PNG")
    pdf = make_pdf_qr_poster(FALLBACK_FONTS, "https://t.me/example")
    assert pdf.startswith(b"%PDF")


def test_safe_filename():
    assert safe_filename('Чай: "зелёный"/2') == "Чай зелёный 2"
    assert safe_filename("   ") == "price_tags"

import io

import pytest
import requests
from openpyxl import Workbook

import importers
from importers import (
    DEFAULT_COLUMN_LABELS,
    DataImportError,
    build_xlsx_template,
    csv_export_url,
    extract_gid,
    extract_sheet_id,
    fetch_google_sheet,
    load_items_from_csv,
    load_items_from_xlsx,
    parse_clipboard_data,
    parse_discount_value,
    sanitize_numeric_value,
)

SHEET_URL = "https://docs.google.com/spreadsheets/d/1AbC-dEf_123/edit#gid=42"


def xlsx_bytes(rows):
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


@pytest.mark.parametrize("value", ["да", "Да", " true ", "yes", "1", "истина", "y", "д", "+", "т", "true1", 1])
def test_positive_discount_values(value):
    assert parse_discount_value(value) is True


@pytest.mark.parametrize("value", ["нет", "FALSE", "no", "0", "ложь", "n", "н", "-", "ф", "false0", 0])
def test_negative_discount_values(value):
    assert parse_discount_value(value) is False


@pytest.mark.parametrize("value", [None, "", "   ", "может быть", "2"])
def test_unknown_discount_values(value):
    assert parse_discount_value(value) is None


@pytest.mark.parametrize("raw, expected", [
    ("2 999", 2999),
    ("2\u00a0999", 2999),
    ("1,5", 1.5),
    ("1 500,50", 1500.5),
    (2999.0, 2999),
    ("abc", None),
    ("", None),
    (None, None),
])
def test_sanitize_numeric_value(raw, expected):
    assert sanitize_numeric_value(raw) == expected


class TestClipboard:
    def test_header_row_detected(self):
        result = parse_clipboard_data("Название\tЦена\nЧай\t2999\nКофе\t0\n")
        assert [i.data for i in result.items] == ["Чай"]
        assert result.items[0].price == 2999
        assert result.column_labels == ["Название", "Цена"]
        assert result.accepted == 1
        assert result.rejected == 1

    def test_without_header_all_columns(self):
        result = parse_clipboard_data("Чай;2999;SALE;да;2800;2700\nКофе;500;;нет")
        tea, coffee = result.items
        assert tea.design_type == "sale"
        assert tea.has_discount is True
        assert tea.price_for_2 == 2800
        assert tea.price_from_3 == 2700
        assert coffee.design_type is None
        assert coffee.has_discount is False
        assert result.has_table_designs
        assert result.has_table_discounts
        assert result.column_labels == DEFAULT_COLUMN_LABELS

    def test_space_separated_columns(self):
        result = parse_clipboard_data("Зелёный чай    350")
        assert result.items[0].data == "Зелёный чай"
        assert result.items[0].price == 350
        assert not result.has_table_designs

    def test_single_cell_lines_are_skipped(self):
        result = parse_clipboard_data("Чай\t100\nпросто строка")
        assert len(result.items) == 1
        assert result.rejected == 1

    def test_empty_input(self):
        result = parse_clipboard_data("  \n\n")
        assert result.items == []
        assert result.column_labels == []

    def test_ids_left_for_store(self):
        result = parse_clipboard_data("Чай\t100\nКофе\t200")
        assert all(i.id == 0 for i in result.items)


class TestExcel:
    def test_template_round_trip(self):
        result = load_items_from_xlsx(build_xlsx_template())
        assert result.column_labels == DEFAULT_COLUMN_LABELS
        assert result.has_table_designs
        assert result.has_table_discounts
        (item,) = result.items
        assert item.data == "Пример товара"
        assert item.price == 2999
        assert item.design_type == "default"
        assert item.has_discount is True

    def test_headers_in_any_order(self):
        data = xlsx_bytes([
            ["Название", "Цена", "Скидка", "Цена от 3"],
            ["Чай", 2999, "нет", 2500],
            ["Кофе", "1 200", "", None],
        ])
        result = load_items_from_xlsx(data)
        tea, coffee = result.items
        assert tea.has_discount is False
        assert tea.price_from_3 == 2500
        assert coffee.price == 1200
        assert coffee.has_discount is None
        assert not result.has_table_designs
        assert result.has_table_discounts
        assert result.column_labels == ["Название", "Цена", "Скидка", "Цена от 3"]

    def test_design_without_header_found_on_row_three(self):
        data = xlsx_bytes([
            ["Название", "Цена"],
            ["Чай", 100, "new"],
            ["Кофе", 200, "Ocean"],
        ])
        result = load_items_from_xlsx(data)
        assert result.has_table_designs
        assert [i.design_type for i in result.items] == ["new", "ocean"]

    def test_invalid_rows_counted(self):
        data = xlsx_bytes([
            ["Название", "Цена"],
            ["Чай", 100],
            ["", 200],
            ["Кофе", "бесплатно"],
            ["Сахар", -5],
            [None, None],
        ])
        result = load_items_from_xlsx(data)
        assert result.accepted == 1
        assert result.rejected == 3

    def test_no_valid_rows(self):
        with pytest.raises(DataImportError):
            load_items_from_xlsx(xlsx_bytes([["Название", "Цена"], ["Чай", 0]]))

    def test_not_a_workbook(self):
        with pytest.raises(DataImportError):
            load_items_from_xlsx(b"definitely not a zip")


class TestGoogleSheets:
    def test_url_helpers(self):
        assert extract_sheet_id(SHEET_URL) == "1AbC-dEf_123"
        assert extract_gid(SHEET_URL) == "42"
        assert extract_gid("https://docs.google.com/spreadsheets/d/abc/edit") == "0"
        assert csv_export_url(SHEET_URL) == (
            "https://docs.google.com/spreadsheets/d/1AbC-dEf_123/export?format=csv&gid=42"
        )

    def test_bad_url(self):
        assert extract_sheet_id("https://example.com/sheet") is None
        with pytest.raises(DataImportError):
            csv_export_url("https://example.com/sheet")

    def test_load_items_from_csv(self):
        text = "Название,Цена,Дизайн\nЧай,2999,sale\nКофе,\"1 500\",\n"
        result = load_items_from_csv(text)
        assert [i.price for i in result.items] == [2999, 1500]
        assert result.items[0].design_type == "sale"
        assert result.has_table_designs

    def test_fetch(self, monkeypatch):
        seen = {}

        class Response:
            status_code = 200
            encoding = None
            text = "Название,Цена\nЧай,100\n"

            def raise_for_status(self):
                pass

        def fake_get(url, timeout):
            seen["url"] = url
            seen["timeout"] = timeout
            return Response()

        monkeypatch.setattr(importers.SESSION, "get", fake_get)
        assert fetch_google_sheet(SHEET_URL).startswith("Название")
        assert seen["url"].endswith("export?format=csv&gid=42")
        assert seen["timeout"] == importers.SHEETS_TIMEOUT

    def test_fetch_http_error(self, monkeypatch):
        class Response:
            status_code = 403

            def raise_for_status(self):
                raise requests.HTTPError("forbidden", response=self)

        monkeypatch.setattr(importers.SESSION, "get", lambda url, timeout: Response())
        with pytest.raises(DataImportError, match="403"):
            fetch_google_sheet(SHEET_URL)

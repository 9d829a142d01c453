import csv
import io
import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence

import requests
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font

from items import Item, Number, new_item
from logger import get_logger
from themes import is_theme_key

logger = get_logger(__name__)

DEFAULT_COLUMN_LABELS = ["Название", "Цена", "Дизайн", "Скидка", "Цена за 2", "Цена от 3"]

POSITIVE_DISCOUNT_VALUES = {"да", "true", "yes", "1", "истина", "y", "д", "+", "т", "true1"}
NEGATIVE_DISCOUNT_VALUES = {"нет", "false", "no", "0", "ложь", "n", "н", "-", "ф", "false0"}

# строка листа, по которой угадываем столбец дизайна без заголовка
DESIGN_PROBE_ROW = 3

SHEETS_TIMEOUT = 15
_SHEET_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")
_GID_RE = re.compile(r"[#&?]gid=(\d+)")

SESSION = requests.Session()
SESSION.headers.update({"User-Agent": "pricetag-assistant/1.0"})


class DataImportError(ValueError):
    """Файл или ссылку не удалось разобрать; текст ошибки показывается пользователю."""


@dataclass
class ImportResult:
    items: List[Item] = field(default_factory=list)
    column_labels: List[str] = field(default_factory=list)
    has_table_designs: bool = False
    has_table_discounts: bool = False
    accepted: int = 0
    rejected: int = 0


@dataclass
class _Columns:
    name: int = 0
    price: int = 1
    design: Optional[int] = None
    discount: Optional[int] = None
    price_for_2: Optional[int] = None
    price_from_3: Optional[int] = None


# -------------------------
# Разбор значений
# -------------------------
def parse_discount_value(value: Any) -> Optional[bool]:
    if value is None:
        return None
    s = str(value).strip().lower()
    if not s:
        return None
    if s in POSITIVE_DISCOUNT_VALUES:
        return True
    if s in NEGATIVE_DISCOUNT_VALUES:
        return False
    return None


def sanitize_numeric_value(value: Any) -> Optional[Number]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = value
    else:
        s = re.sub(r"\s", "", str(value))
        # "1,5" -> "1.5"
        s = re.sub(r",(\d{1,2})$", r".\1", s).replace(",", ".")
        if not s:
            return None
        try:
            num = float(s)
        except ValueError:
            return None
    if isinstance(num, float):
        if math.isnan(num) or math.isinf(num):
            return None
        if num.is_integer():
            return int(num)
    return num


def _cell_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _design_value(value: Any) -> Optional[str]:
    s = _cell_str(value).lower()
    return s if is_theme_key(s) else None


def _cell(row: Sequence[Any], idx: Optional[int]) -> Any:
    if idx is None or idx >= len(row):
        return None
    return row[idx]


def _columns_from_header(header: Sequence[Any]) -> _Columns:
    cols = _Columns()
    names = {"дизайн": "design", "скидка": "discount", "цена за 2": "price_for_2", "цена от 3": "price_from_3"}
    for idx, label in enumerate(header):
        attr = names.get(_cell_str(label).lower())
        if attr:
            setattr(cols, attr, idx)
    return cols


def _labels_for(header: Sequence[Any], cols: _Columns) -> List[str]:
    def label(idx: int, fallback: str) -> str:
        return _cell_str(_cell(header, idx)) or fallback

    labels = [label(cols.name, DEFAULT_COLUMN_LABELS[0]), label(cols.price, DEFAULT_COLUMN_LABELS[1])]
    for idx, fallback in (
        (cols.design, DEFAULT_COLUMN_LABELS[2]),
        (cols.discount, DEFAULT_COLUMN_LABELS[3]),
        (cols.price_for_2, DEFAULT_COLUMN_LABELS[4]),
        (cols.price_from_3, DEFAULT_COLUMN_LABELS[5]),
    ):
        if idx is not None:
            labels.append(label(idx, fallback))
    return labels


def _rows_to_result(rows: Iterable[Sequence[Any]], cols: _Columns, labels: List[str]) -> ImportResult:
    result = ImportResult(column_labels=labels)
    for row in rows:
        if not any(_cell_str(v) for v in row):
            continue

        name = _cell_str(_cell(row, cols.name))
        price = sanitize_numeric_value(_cell(row, cols.price))
        if not name or price is None or price <= 0:
            result.rejected += 1
            continue

        item = new_item(
            name,
            price,
            design_type=_design_value(_cell(row, cols.design)),
            has_discount=parse_discount_value(_cell(row, cols.discount)),
            price_for_2=sanitize_numeric_value(_cell(row, cols.price_for_2)),
            price_from_3=sanitize_numeric_value(_cell(row, cols.price_from_3)),
        )
        result.items.append(item)

    result.accepted = len(result.items)
    result.has_table_designs = cols.design is not None
    result.has_table_discounts = cols.discount is not None
    if result.rejected:
        logger.info("Import: accepted %d row(s), rejected %d", result.accepted, result.rejected)
    return result


# -------------------------
# Вставка из буфера
# -------------------------
def _split_line(line: str) -> List[str]:
    if "\t" in line:
        cells = line.split("\t")
    elif ";" in line:
        cells = line.split(";")
    elif "," in line:
        cells = line.split(",")
    else:
        cells = re.split(r"\s{2,}", line)
    return [c.strip() for c in cells]


def parse_clipboard_data(text: str) -> ImportResult:
    """Строки, скопированные из таблицы: название, цена, дизайн, скидка, цена за 2, цена от 3."""
    lines = [line.strip() for line in (text or "").splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        return ImportResult()

    first = _split_line(lines[0])
    header_present = len(first) >= 2 and sanitize_numeric_value(first[1]) is None

    rows = [_split_line(line) for line in (lines[1:] if header_present else lines)]
    # одна ячейка не может быть строкой товара
    short = sum(1 for r in rows if len(r) < 2)
    rows = [r for r in rows if len(r) >= 2]

    width = max([len(first)] + [len(r) for r in rows])
    cols = _Columns(
        design=2 if width > 2 else None,
        discount=3 if width > 3 else None,
        price_for_2=4 if width > 4 else None,
        price_from_3=5 if width > 5 else None,
    )
    labels = first if header_present else DEFAULT_COLUMN_LABELS[: max(width, 2)]

    result = _rows_to_result(rows, cols, [])
    result.rejected += short
    result.column_labels = list(labels)
    # флаги таблицы включаем, только если значения реально есть
    result.has_table_designs = any(i.design_type is not None for i in result.items)
    result.has_table_discounts = any(i.has_discount is not None for i in result.items)
    return result


# -------------------------
# Excel
# -------------------------
def build_xlsx_template() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Ценники"
    ws.append(DEFAULT_COLUMN_LABELS)

    header_font = Font(bold=True)
    for col in range(1, len(DEFAULT_COLUMN_LABELS) + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for letter, width in zip("ABCDEF", (42, 14, 14, 12, 14, 14)):
        ws.column_dimensions[letter].width = width

    ws.append(["Пример товара", 2999, "default", "да", "", ""])

    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def load_items_from_xlsx(xlsx_bytes: bytes) -> ImportResult:
    try:
        wb = load_workbook(io.BytesIO(xlsx_bytes), data_only=True, read_only=True)
    except Exception as e:
        raise DataImportError(f"Не удалось открыть Excel: {e}") from e

    ws = wb.active
    rows = [list(r) for r in ws.iter_rows(values_only=True)]
    wb.close()
    if not rows:
        raise DataImportError("Excel пустой: заполни хотя бы одну строку.")

    header = rows[0]
    cols = _columns_from_header(header)
    if cols.design is None and len(rows) >= DESIGN_PROBE_ROW and _design_value(_cell(rows[DESIGN_PROBE_ROW - 1], 2)):
        # дизайн в столбце C без заголовка
        cols.design = 2

    result = _rows_to_result(rows[1:], cols, _labels_for(header, cols))
    if not result.items:
        raise DataImportError("В Excel нет строк с названием и ценой больше нуля.")
    logger.info("Loaded %d item(s) from Excel", result.accepted)
    return result


# -------------------------
# Google Таблицы
# -------------------------
def extract_sheet_id(url: str) -> Optional[str]:
    m = _SHEET_ID_RE.search(url or "")
    return m.group(1) if m else None


def extract_gid(url: str) -> str:
    m = _GID_RE.search(url or "")
    return m.group(1) if m else "0"


def csv_export_url(url: str) -> str:
    sheet_id = extract_sheet_id(url)
    if not sheet_id:
        raise DataImportError("Это не похоже на ссылку Google Таблицы.")
    return f"https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv&gid={extract_gid(url)}"


def _fetch(url: str) -> str:
    r = SESSION.get(url, timeout=SHEETS_TIMEOUT)
    r.raise_for_status()
    r.encoding = "utf-8"
    return r.text


def fetch_google_sheet(url: str) -> str:
    export_url = csv_export_url(url)
    logger.debug("Fetching Google Sheet: %s", export_url)
    try:
        return _fetch(export_url)
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else "?"
        raise DataImportError(
            f"Google Таблица недоступна (HTTP {status}). Открой доступ по ссылке для просмотра."
        ) from e
    except requests.RequestException as e:
        raise DataImportError(f"Не удалось загрузить Google Таблицу: {e}") from e


def load_items_from_csv(text: str) -> ImportResult:
    rows = [r for r in csv.reader(io.StringIO(text or ""))]
    if not rows:
        raise DataImportError("Таблица пустая.")

    header = rows[0]
    cols = _columns_from_header(header)
    if cols.design is None and len(rows) >= DESIGN_PROBE_ROW and _design_value(_cell(rows[DESIGN_PROBE_ROW - 1], 2)):
        cols.design = 2

    result = _rows_to_result(rows[1:], cols, _labels_for(header, cols))
    if not result.items:
        raise DataImportError("В таблице нет строк с названием и ценой больше нуля.")
    return result


def load_items_from_google_sheet(url: str) -> ImportResult:
    return load_items_from_csv(fetch_google_sheet(url))

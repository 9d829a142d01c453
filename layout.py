from dataclasses import dataclass
from typing import List, Optional, Sequence, TypeVar

from items import Item
from pricing import TABLE_DESIGN_TYPE, discount_applies, has_multi_tier_pricing
from tag_settings import AUTO_CUT_LINE_COLOR, TagSettings
from themes import Theme

T = TypeVar("T")

GRID_COLUMNS = 3
# печать: 6 рядов x 3 колонки на A4
DEFAULT_ITEMS_PER_PAGE = 18

# размеры одного ценника (px в HTML, pt в PDF)
TAG_WIDTH = 160
TAG_HEIGHT = 110
# блок названия
NAME_BOX_WIDTH = 146
NAME_BOX_HEIGHT = 24

LABELS = {"new": "NEW", "sale": "SALE"}


@dataclass(frozen=True)
class TagView:
    """Всё, что нужно рендереру для одного ценника."""
    item: Item
    design_type: str
    theme: Theme
    show_discount: bool
    discount_price: float
    multi_tier: bool
    label: Optional[str]
    label_color: Optional[str]
    cut_line_color: str
    needs_border: bool
    border_color: str

    @property
    def name(self) -> str:
        return str(self.item.data)


@dataclass(frozen=True)
class Page:
    index: int
    tags: List[TagView]
    is_last: bool


def paginate(items: Sequence[T], per_page: int = DEFAULT_ITEMS_PER_PAGE) -> List[List[T]]:
    if per_page < 1:
        raise ValueError(f"per_page must be >= 1, got {per_page}")
    return [list(items[i:i + per_page]) for i in range(0, len(items), per_page)]


def resolve_design_type(item: Item, settings: TagSettings) -> str:
    design_type = settings.design_type
    # дизайн строки важнее глобального только в табличном режиме
    if settings.has_table_designs and design_type == TABLE_DESIGN_TYPE and item.design_type:
        design_type = item.design_type
    # "table" и прочие неизвестные ключи -> default
    if design_type not in settings.themes:
        return "default"
    return design_type


def cut_line_color(theme: Theme, custom: Optional[str] = None) -> str:
    if custom and custom.lower() != AUTO_CUT_LINE_COLOR:
        return custom
    # чёрные линии, если текст не белый, иначе белые
    return "#000000" if theme.text_color.lower() != "#ffffff" else "#ffffff"


def build_tag_view(item: Item, settings: TagSettings) -> TagView:
    design_type = resolve_design_type(item, settings)
    theme = settings.themes[design_type]

    applies = discount_applies(item, settings.design, settings.design_type, settings.has_table_discounts)
    discount_price = item.discount_price if applies else item.price

    label = LABELS.get(design_type) if settings.show_theme_labels else None
    # акцент ленты: конечный цвет градиента темы
    label_color = theme.end if label else None

    return TagView(
        item=item,
        design_type=design_type,
        theme=theme,
        show_discount=applies and discount_price < item.price,
        discount_price=discount_price,
        multi_tier=has_multi_tier_pricing(item),
        label=label,
        label_color=label_color,
        cut_line_color=cut_line_color(theme, settings.cutting_line_color),
        needs_border=design_type in ("white", "black") or theme.is_solid,
        border_color="#e5e5e5" if design_type == "white" else "#333333",
    )


def build_pages(items: Sequence[Item], settings: TagSettings, per_page: int = DEFAULT_ITEMS_PER_PAGE) -> List[Page]:
    chunks = paginate(items, per_page)
    return [
        Page(
            index=i,
            tags=[build_tag_view(item, settings) for item in chunk],
            is_last=i == len(chunks) - 1,
        )
        for i, chunk in enumerate(chunks)
    ]

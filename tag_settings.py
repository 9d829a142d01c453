from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from logger import get_logger
from items import to_number
from pricing import TABLE_DESIGN_TYPE, DiscountSettings
from themes import Theme, get_all_themes, is_theme_key, themes_from_dict, themes_to_dict

logger = get_logger(__name__)

FONTS = ("montserrat", "nunito", "inter", "mont")

DEFAULT_DISCOUNT_AMOUNT = 500
DEFAULT_MAX_DISCOUNT_PERCENT = 5
DEFAULT_DISCOUNT_TEXT = "цена при подписке\nна телеграм канал"
# серый из старых настроек означает "подобрать цвет линий реза автоматически"
AUTO_CUT_LINE_COLOR = "#cccccc"

Listener = Callable[["TagSettings"], None]


@dataclass
class TagSettings:
    design: bool = False
    design_type: str = "default"
    themes: Dict[str, Theme] = field(default_factory=get_all_themes)
    current_font: str = "montserrat"
    discount_amount: float = DEFAULT_DISCOUNT_AMOUNT
    max_discount_percent: float = DEFAULT_MAX_DISCOUNT_PERCENT
    discount_text: str = DEFAULT_DISCOUNT_TEXT
    has_table_designs: bool = False
    has_table_discounts: bool = False
    show_theme_labels: bool = False
    cutting_line_color: Optional[str] = None
    _listeners: List[Listener] = field(default_factory=list, repr=False, compare=False)

    @property
    def discount_settings(self) -> DiscountSettings:
        return DiscountSettings(self.discount_amount, self.max_discount_percent)

    @property
    def table_mode(self) -> bool:
        return self.design_type == TABLE_DESIGN_TYPE

    # --- подписки
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _changed(self):
        for listener in list(self._listeners):
            listener(self)

    # --- сеттеры
    def set_design(self, design: bool):
        self.design = bool(design)
        self._changed()

    def set_design_type(self, design_type: str):
        if design_type != TABLE_DESIGN_TYPE and not is_theme_key(design_type):
            logger.warning("Unknown design type %r, keeping %r", design_type, self.design_type)
            return
        self.design_type = design_type
        # в табличном режиме со скидками из таблицы глобальная скидка выключается,
        # иначе две политики скидок наложатся
        if design_type == TABLE_DESIGN_TYPE and self.has_table_discounts:
            self.design = False
        self._changed()

    def set_themes(self, themes: Dict[str, Theme]):
        merged = get_all_themes()
        merged.update({k: v for k, v in themes.items() if k in merged})
        self.themes = merged
        self._changed()

    def set_current_font(self, font: str):
        if font not in FONTS:
            logger.warning("Unknown font %r, keeping %r", font, self.current_font)
            return
        self.current_font = font
        self._changed()

    def set_discount_amount(self, amount: float):
        if amount < 0:
            logger.warning("Negative discount amount %r ignored", amount)
            return
        self.discount_amount = amount
        self._changed()

    def set_max_discount_percent(self, percent: float):
        if not 0 <= percent <= 100:
            logger.warning("Max discount percent %r is outside 0..100", percent)
            return
        self.max_discount_percent = percent
        self._changed()

    def set_discount_text(self, text: str):
        self.discount_text = text
        self._changed()

    def set_has_table_designs(self, has: bool):
        self.has_table_designs = bool(has)
        self._changed()

    def set_has_table_discounts(self, has: bool):
        self.has_table_discounts = bool(has)
        self._changed()

    def set_show_theme_labels(self, show: bool):
        self.show_theme_labels = bool(show)
        self._changed()

    def set_cutting_line_color(self, color: Optional[str]):
        self.cutting_line_color = color or None
        self._changed()

    def reset(self):
        """Сбрасывает дизайн и табличные флаги; шрифт и параметры скидки остаются."""
        self.design = False
        self.design_type = "default"
        self.themes = get_all_themes()
        self.has_table_designs = False
        self.has_table_discounts = False
        self._changed()

    # --- сохранение
    def to_dict(self) -> Dict[str, Any]:
        return {
            "design": self.design,
            "designType": self.design_type,
            "themes": themes_to_dict(self.themes),
            "currentFont": self.current_font,
            "discountAmount": self.discount_amount,
            "maxDiscountPercent": self.max_discount_percent,
            "discountText": self.discount_text,
            "hasTableDesigns": self.has_table_designs,
            "hasTableDiscounts": self.has_table_discounts,
            "showThemeLabels": self.show_theme_labels,
            "cuttingLineColor": self.cutting_line_color,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "TagSettings":
        settings = cls()
        if not isinstance(data, dict):
            return settings

        design_type = data.get("designType")
        if design_type == TABLE_DESIGN_TYPE or is_theme_key(design_type):
            settings.design_type = design_type
        if data.get("currentFont") in FONTS:
            settings.current_font = data["currentFont"]

        amount = to_number(data.get("discountAmount"))
        if amount is not None and amount >= 0:
            settings.discount_amount = amount
        percent = to_number(data.get("maxDiscountPercent"))
        if percent is not None and 0 <= percent <= 100:
            settings.max_discount_percent = percent

        if isinstance(data.get("discountText"), str):
            settings.discount_text = data["discountText"]
        if isinstance(data.get("cuttingLineColor"), str):
            settings.cutting_line_color = data["cuttingLineColor"] or None

        settings.design = bool(data.get("design", False))
        settings.has_table_designs = bool(data.get("hasTableDesigns", False))
        settings.has_table_discounts = bool(data.get("hasTableDiscounts", False))
        settings.show_theme_labels = bool(data.get("showThemeLabels", False))
        settings.themes = themes_from_dict(data.get("themes"))
        return settings

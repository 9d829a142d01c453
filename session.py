from typing import Any, Dict, Optional

from html_render import render_html_document
from importers import ImportResult
from items import ItemStore
from layout import DEFAULT_ITEMS_PER_PAGE
from logger import get_logger
from pricing import update_item_prices
from render import Fonts, make_pdf_price_tags
from tag_settings import TagSettings

logger = get_logger(__name__)


class PriceTagSession:
    """Настройки и товары одного пользователя.

    Цены со скидкой пересчитываются на каждое изменение товаров и на
    каждое изменение настроек, так что discount_price всегда
    соответствует текущим правилам.
    """

    def __init__(self, settings: Optional[TagSettings] = None, store: Optional[ItemStore] = None):
        self.settings = settings or TagSettings()
        self.store = store or ItemStore()
        self.store.set_pricer(self._price)
        self._unsubscribe = self.settings.subscribe(lambda _: self.store.reprice())
        self.store.reprice()

    def _price(self, items):
        s = self.settings
        return update_item_prices(items, s.discount_settings, s.design, s.design_type, s.has_table_discounts)

    @property
    def items(self):
        return self.store.items

    def apply_import(self, result: ImportResult):
        # флаги ставим до set_items, чтобы первая же запись истории была с верными ценами
        self.settings.has_table_designs = result.has_table_designs
        self.settings.has_table_discounts = result.has_table_discounts
        if not result.has_table_designs and self.settings.table_mode:
            self.settings.design_type = "default"
        self.store.column_labels = list(result.column_labels)
        self.store.set_items(result.items)
        logger.info(
            "Imported %d item(s) (table designs: %s, table discounts: %s)",
            len(self.store), result.has_table_designs, result.has_table_discounts,
        )

    def render_pdf(
        self,
        fonts: Optional[Dict[str, Fonts]] = None,
        *,
        page_format: str = "A4",
        margin: str = "12mm",
        per_page: int = DEFAULT_ITEMS_PER_PAGE,
    ) -> bytes:
        return make_pdf_price_tags(
            self.items, self.settings, fonts, page_format=page_format, margin=margin, per_page=per_page
        )

    def render_html(self, *, page_format: str = "A4", margin: str = "12mm", per_page: int = DEFAULT_ITEMS_PER_PAGE) -> str:
        return render_html_document(self.items, self.settings, page_format=page_format, margin=margin, per_page=per_page)

    def to_dict(self) -> Dict[str, Any]:
        return {"settings": self.settings.to_dict(), "store": self.store.to_dict()}

    @classmethod
    def from_dict(cls, data: Any) -> "PriceTagSession":
        if not isinstance(data, dict):
            return cls()
        session = cls(settings=TagSettings.from_dict(data.get("settings")))
        store_data = data.get("store")
        if isinstance(store_data, dict):
            session.store.load_dict(store_data)
        return session

    def close(self):
        self._unsubscribe()

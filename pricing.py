# Расчёт цен: скидка с ограничением по проценту и оптовые цены

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence

from items import Item, Number

TABLE_DESIGN_TYPE = "table"


@dataclass(frozen=True)
class DiscountSettings:
    discount_amount: Number = 500
    max_discount_percent: Number = 5


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_discount_price(price: Number, settings: DiscountSettings) -> Number:
    """Цена со скидкой: price - discount_amount, но не больше max_discount_percent.

    price > 0 обязательно, нулевые и отрицательные цены отсекаются раньше.
    """
    discounted = price - settings.discount_amount
    percent_off = (price - discounted) / price * 100

    if percent_off > settings.max_discount_percent:
        result = round_half_up(price - price * settings.max_discount_percent / 100)
    else:
        result = round_half_up(max(discounted, 0))
    # округление дробной цены вверх не должно давать цену выше исходной
    return min(result, price)


def discount_applies(item: Item, design: bool, design_type: str, has_table_discounts: bool) -> bool:
    # флаг из таблицы важнее глобального, но только в табличном режиме
    if has_table_discounts and design_type == TABLE_DESIGN_TYPE and item.has_discount is not None:
        return item.has_discount
    return design


def update_item_prices(
    items: Sequence[Item],
    discount_settings: DiscountSettings,
    design: bool,
    design_type: str,
    has_table_discounts: bool,
) -> List[Item]:
    out = []
    for item in items:
        if discount_applies(item, design, design_type, has_table_discounts):
            discount_price = calculate_discount_price(item.price, discount_settings)
        else:
            discount_price = item.price
        out.append(replace(item, discount_price=discount_price))
    return out


def calculate_multi_tier_pricing(item: Item) -> Dict[str, Any]:
    price = item.price
    return {
        "basePrice": price,
        "priceFor2": item.price_for_2,
        "priceFrom3": item.price_from_3,
        "savings2": (price - item.price_for_2) / price * 100 if item.price_for_2 else 0,
        "savings3": (price - item.price_from_3) / price * 100 if item.price_from_3 else 0,
    }


def has_multi_tier_pricing(item: Item) -> bool:
    return bool(item.price_for_2) and bool(item.price_from_3)


def validate_price(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def format_number(value: Optional[Number]) -> str:
    """Группировка разрядов как в ru-RU: 2999 -> '2 999' (неразрывный пробел)."""
    if value is None:
        return ""
    if isinstance(value, float) and not value.is_integer():
        whole = f"{value:,.2f}".rstrip("0").rstrip(".")
        return whole.replace(",", "\u00a0").replace(".", ",")
    return f"{int(value):,}".replace(",", "\u00a0")


def format_price(price: Any, currency: str = "₽") -> str:
    if not validate_price(price):
        return f"0{currency}"
    return f"{round_half_up(price)}{currency}"

import math
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from logger import get_logger

logger = get_logger(__name__)

Number = Union[int, float]
Pricer = Callable[[Sequence["Item"]], List["Item"]]
Listener = Callable[[Tuple["Item", ...]], None]

# на одну миллисекунду приходится до COUNTER_SPAN идентификаторов
COUNTER_SPAN = 1000

# camelCase (JSON/таблицы) -> имя поля
FIELD_ALIASES = {
    "discountPrice": "discount_price",
    "designType": "design_type",
    "hasDiscount": "has_discount",
    "priceFor2": "price_for_2",
    "priceFrom3": "price_from_3",
}


@dataclass(frozen=True)
class Item:
    """Одна строка ценника. discount_price всегда пересчитывается из price и настроек."""
    id: int
    data: Union[str, Number]
    price: Number
    discount_price: Number
    design_type: Optional[str] = None
    has_discount: Optional[bool] = None
    price_for_2: Optional[Number] = None
    price_from_3: Optional[Number] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "data": self.data,
            "price": self.price,
            "discountPrice": self.discount_price,
        }
        if self.design_type is not None:
            out["designType"] = self.design_type
        if self.has_discount is not None:
            out["hasDiscount"] = self.has_discount
        if self.price_for_2 is not None:
            out["priceFor2"] = self.price_for_2
        if self.price_from_3 is not None:
            out["priceFrom3"] = self.price_from_3
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Item"]:
        """None для записи без положительной цены."""
        price = to_number(data.get("price"))
        if price is None or price <= 0:
            return None
        discount_price = to_number(data.get("discountPrice"))
        design_type = data.get("designType")
        has_discount = data.get("hasDiscount")
        return cls(
            id=int(data.get("id") or 0),
            data=data.get("data", ""),
            price=price,
            discount_price=price if discount_price is None else discount_price,
            design_type=str(design_type) if design_type else None,
            has_discount=None if has_discount is None else to_bool(has_discount),
            price_for_2=to_number(data.get("priceFor2")),
            price_from_3=to_number(data.get("priceFrom3")),
        )


def new_item(
    data: Union[str, Number],
    price: Number,
    *,
    design_type: Optional[str] = None,
    has_discount: Optional[bool] = None,
    price_for_2: Optional[Number] = None,
    price_from_3: Optional[Number] = None,
) -> Item:
    """Черновик без id: идентификатор выдаёт ItemStore."""
    return Item(
        id=0,
        data=data,
        price=price,
        discount_price=price,
        design_type=design_type,
        has_discount=has_discount,
        price_for_2=price_for_2,
        price_from_3=price_from_3,
    )


# -------------------------
# Приведение типов
# -------------------------
def to_number(value: Any) -> Optional[Number]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = value
    else:
        s = str(value).strip().replace("\u00a0", "").replace(" ", "").replace(",", ".")
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


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y", "да", "д", "+")
    return bool(value)


def has_valid_price(item: Item) -> bool:
    return isinstance(item.price, (int, float)) and not isinstance(item.price, bool) and item.price > 0


# -------------------------
# Идентификаторы
# -------------------------
class IdGenerator:
    """Миллисекунды * COUNTER_SPAN + счётчик внутри миллисекунды.

    Значения строго возрастают в пределах процесса, даже если часы стоят
    или идут назад.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self._clock = clock or (lambda: time.time_ns() // 1_000_000)
        self._last_ms = 0
        self._counter = 0

    def next_id(self) -> int:
        now = int(self._clock())
        if now > self._last_ms:
            self._last_ms = now
            self._counter = 0
        else:
            self._counter += 1
            if self._counter >= COUNTER_SPAN:
                self._last_ms += 1
                self._counter = 0
        return self._last_ms * COUNTER_SPAN + self._counter

    def observe(self, item_id: int):
        """Поднимает нижнюю границу, чтобы не выдать уже существующий id."""
        ms, counter = divmod(int(item_id), COUNTER_SPAN)
        if (ms, counter) > (self._last_ms, self._counter):
            self._last_ms, self._counter = ms, counter


_default_ids = IdGenerator()


def generate_unique_id() -> int:
    return _default_ids.next_id()


# -------------------------
# Хранилище с историей
# -------------------------
class ItemStore:
    def __init__(self, pricer: Optional[Pricer] = None, id_generator: Optional[IdGenerator] = None):
        self._pricer = pricer
        self._ids = id_generator or _default_ids
        self._items: List[Item] = []
        self._history: List[Tuple[Item, ...]] = [()]
        self._history_index = 0
        self._listeners: List[Listener] = []
        self.column_labels: List[str] = []

    # --- чтение
    @property
    def items(self) -> Tuple[Item, ...]:
        return tuple(self._items)

    @property
    def history(self) -> Tuple[Tuple[Item, ...], ...]:
        return tuple(self._history)

    @property
    def history_index(self) -> int:
        return self._history_index

    @property
    def can_undo(self) -> bool:
        return self._history_index > 0

    @property
    def can_redo(self) -> bool:
        return self._history_index < len(self._history) - 1

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: int) -> Optional[Item]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    # --- подписки
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        snapshot = self.items
        for listener in list(self._listeners):
            listener(snapshot)

    # --- внутреннее
    def set_pricer(self, pricer: Optional[Pricer]):
        self._pricer = pricer

    def _priced(self, items: Iterable[Item]) -> List[Item]:
        items = list(items)
        if self._pricer is None:
            return items
        return list(self._pricer(items))

    def _commit(self, items: Iterable[Item]):
        self._items = self._priced(items)
        # всё "будущее" после курсора отбрасываем
        del self._history[self._history_index + 1:]
        self._history.append(tuple(self._items))
        self._history_index = len(self._history) - 1
        self._notify()

    def _fresh(self, item: Item) -> Item:
        return replace(item, id=self._ids.next_id())

    # --- операции
    def set_items(self, items: Iterable[Item]):
        accepted: List[Item] = []
        seen = set()
        rejected = 0
        for item in items:
            if not has_valid_price(item):
                rejected += 1
                continue
            if not item.id or item.id in seen:
                item = self._fresh(item)
            else:
                self._ids.observe(item.id)
            seen.add(item.id)
            accepted.append(item)
        if rejected:
            logger.info("set_items: dropped %d item(s) without a positive price", rejected)
        self._commit(accepted)

    def add_item(self, item: Item) -> Optional[Item]:
        if not has_valid_price(item):
            logger.debug("add_item: ignoring item without a positive price: %r", item)
            return None
        added = self._fresh(item)
        self._commit(self._items + [added])
        return self.get(added.id)

    def update_item(self, item_id: int, field: str, value: Any):
        field = FIELD_ALIASES.get(field, field)
        for idx, item in enumerate(self._items):
            if item.id == item_id:
                break
        else:
            logger.debug("update_item: no item with id %s", item_id)
            return

        if field == "price":
            price = to_number(value)
            if price is None or price <= 0:
                logger.debug("update_item: rejected price %r for id %s", value, item_id)
                return
            changed = replace(item, price=price)
        elif field == "data":
            changed = replace(item, data=value)
        elif field == "design_type":
            changed = replace(item, design_type=str(value) if value not in (None, "") else None)
        elif field == "has_discount":
            changed = replace(item, has_discount=to_bool(value))
        elif field in ("price_for_2", "price_from_3"):
            changed = replace(item, **{field: to_number(value)})
        else:
            logger.debug("update_item: field %r is not editable", field)
            return

        items = list(self._items)
        items[idx] = changed
        self._commit(items)

    def delete_item(self, item_id: int):
        # снимок пишем, только если что-то действительно удалили
        remaining = [item for item in self._items if item.id != item_id]
        if len(remaining) == len(self._items):
            logger.debug("delete_item: no item with id %s", item_id)
            return
        self._commit(remaining)

    def duplicate_items(self, ids: Iterable[int]) -> List[Item]:
        wanted = set(ids)
        if not wanted:
            return []
        copies = [self._fresh(item) for item in self._items if item.id in wanted]
        if not copies:
            return []
        self._commit(self._items + copies)
        return [self.get(c.id) for c in copies]

    def undo(self):
        if not self.can_undo:
            return
        self._history_index -= 1
        self._items = self._priced(self._history[self._history_index])
        self._notify()

    def redo(self):
        if not self.can_redo:
            return
        self._history_index += 1
        self._items = self._priced(self._history[self._history_index])
        self._notify()

    def clear_items(self):
        self._items = []
        self._history = [()]
        self._history_index = 0
        self._notify()

    def reprice(self):
        """Пересчёт цен под текущие настройки; историю не трогает."""
        self._items = self._priced(self._items)
        self._notify()

    # --- сохранение
    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self._items],
            "history": [[item.to_dict() for item in snap] for snap in self._history],
            "historyIndex": self._history_index,
            "columnLabels": list(self.column_labels),
        }

    def load_dict(self, data: Dict[str, Any]):
        """Восстанавливает состояние; битую историю заменяет одним снимком текущих товаров."""
        items = _items_from_list(data.get("items"))
        history: List[Tuple[Item, ...]] = []
        raw_history = data.get("history")
        if isinstance(raw_history, list):
            for snap in raw_history:
                if not isinstance(snap, list):
                    history = []
                    break
                history.append(tuple(_items_from_list(snap)))

        index = data.get("historyIndex")
        if not history or not isinstance(index, int) or not 0 <= index < len(history):
            history = [tuple(items)]
            index = 0

        for snap in history:
            for item in snap:
                self._ids.observe(item.id)
        for item in items:
            self._ids.observe(item.id)

        labels = data.get("columnLabels")
        self.column_labels = [str(x) for x in labels] if isinstance(labels, list) else []
        self._history = history
        self._history_index = index
        self._items = self._priced(items)
        self._notify()


def _items_from_list(raw: Any) -> List[Item]:
    if not isinstance(raw, list):
        return []
    out = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            item = Item.from_dict(entry)
        except (TypeError, ValueError) as e:
            logger.warning("Skipping stored item %r: %s", entry.get("id"), e)
            continue
        if item is not None and item.id:
            out.append(item)
    return out

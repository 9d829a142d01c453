import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from logger import get_logger

logger = get_logger(__name__)

THEMES_VERSION = "1.0.0"

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")
THEME_FIELDS = ("start", "end", "textColor")

CATEGORIES = ("light", "dark", "light-monochrome", "dark-monochrome")


@dataclass(frozen=True)
class Theme:
    start: str
    end: str
    text_color: str

    @property
    def is_solid(self) -> bool:
        return self.start.lower() == self.end.lower()

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end, "textColor": self.text_color}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "Theme":
        return cls(start=data["start"], end=data["end"], text_color=data["textColor"])


@dataclass(frozen=True)
class ThemeMetadata:
    id: str
    name: str
    emoji: str
    category: str
    order: int
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "emoji": self.emoji,
            "category": self.category,
            "order": self.order,
        }
        if self.description:
            data["description"] = self.description
        return data


# -------------------------
# Каталог тем
# -------------------------
DEFAULT_THEMES: Dict[str, Theme] = {
    "default": Theme("#222222", "#dd4c9b", "#ffffff"),
    "new": Theme("#222222", "#9cdd4c", "#ffffff"),
    "sale": Theme("#222222", "#dd4c54", "#ffffff"),
    "white": Theme("#ffffff", "#ffffff", "#000000"),
    "black": Theme("#000000", "#000000", "#ffffff"),
    "sunset": Theme("#ff7e5f", "#feb47b", "#ffffff"),
    "ocean": Theme("#667eea", "#764ba2", "#ffffff"),
    "forest": Theme("#134e5e", "#71b280", "#ffffff"),
    "royal": Theme("#4c63d2", "#9c27b0", "#ffffff"),
    "vintage": Theme("#8b4513", "#d2b48c", "#ffffff"),
    "neon": Theme("#00ff00", "#ff00ff", "#000000"),
    "monochrome": Theme("#4a4a4a", "#888888", "#ffffff"),
    "silver": Theme("#c0c0c0", "#e8e8e8", "#000000"),
    "charcoal": Theme("#2c2c2c", "#2c2c2c", "#ffffff"),
    "paper": Theme("#f8f8f8", "#f0f0f0", "#333333"),
    "ink": Theme("#1a1a1a", "#1a1a1a", "#ffffff"),
    "snow": Theme("#ffffff", "#f5f5f5", "#000000"),
}

# Порядок записей не важен: внутри категории сортируем по order
THEME_METADATA: List[ThemeMetadata] = [
    ThemeMetadata("white", "Белый", "⚪", "light", 1),
    ThemeMetadata("snow", "Снег", "❄️", "light", 2),
    ThemeMetadata("silver", "Серебро", "🥈", "light", 3),
    ThemeMetadata("paper", "Бумага", "📄", "light", 4),
    ThemeMetadata("monochrome", "Монохром", "🎨", "light-monochrome", 1),
    ThemeMetadata("default", "Классик", "🎯", "dark", 1),
    ThemeMetadata("new", "Новинка", "✨", "dark", 2),
    ThemeMetadata("sale", "Распродажа", "🏷️", "dark", 3),
    ThemeMetadata("sunset", "Закат", "🌅", "dark", 4),
    ThemeMetadata("ocean", "Океан", "🌊", "dark", 5),
    ThemeMetadata("forest", "Лес", "🌲", "dark", 6),
    ThemeMetadata("royal", "Королевский", "👑", "dark", 7),
    ThemeMetadata("vintage", "Винтаж", "📜", "dark", 8),
    ThemeMetadata("neon", "Неон", "💫", "dark", 9),
    ThemeMetadata("black", "Черный", "⚫", "dark-monochrome", 1),
    ThemeMetadata("charcoal", "Уголь", "⚫", "dark-monochrome", 2),
    ThemeMetadata("ink", "Чернила", "🖋️", "dark-monochrome", 3),
]

CATEGORY_NAMES = {
    "light": "Светлые",
    "dark": "Темные",
    "light-monochrome": "Светлые монохром",
    "dark-monochrome": "Темные монохром",
}

CATEGORY_DESCRIPTIONS = {
    "light": "Светлые фоны с темным текстом",
    "dark": "Темные фоны со светлым текстом",
    "light-monochrome": "Светлые градиенты серых тонов",
    "dark-monochrome": "Темные градиенты серых тонов",
}


# -------------------------
# Доступ
# -------------------------
def is_theme_key(key: Optional[str]) -> bool:
    return key in DEFAULT_THEMES


def get_theme(theme_id: str) -> Optional[Theme]:
    return DEFAULT_THEMES.get(theme_id)


def get_all_themes() -> Dict[str, Theme]:
    return dict(DEFAULT_THEMES)


def get_theme_metadata(theme_id: str) -> Optional[ThemeMetadata]:
    for meta in THEME_METADATA:
        if meta.id == theme_id:
            return meta
    return None


def get_all_theme_metadata() -> List[ThemeMetadata]:
    return list(THEME_METADATA)


def get_themes_by_category(category: str) -> List[ThemeMetadata]:
    return sorted((m for m in THEME_METADATA if m.category == category), key=lambda m: m.order)


def get_themes_by_categories() -> Dict[str, List[ThemeMetadata]]:
    return {category: get_themes_by_category(category) for category in CATEGORIES}


def category_display_name(category: str) -> str:
    return CATEGORY_NAMES.get(category, category)


def category_description(category: str) -> str:
    return CATEGORY_DESCRIPTIONS.get(category, "")


# -------------------------
# Валидация и CSS
# -------------------------
def validate_theme(candidate: Any) -> bool:
    """True, если у объекта ровно поля start/end/textColor и все три в формате #RRGGBB."""
    if not isinstance(candidate, dict):
        return False
    if set(candidate.keys()) != set(THEME_FIELDS):
        return False
    for field in THEME_FIELDS:
        value = candidate[field]
        if not isinstance(value, str) or not HEX_COLOR_RE.match(value):
            return False
    return True


def create_gradient(theme: Theme, direction: str = "135deg") -> str:
    return f"linear-gradient({direction}, {theme.start}, {theme.end})"


def css_variables(theme: Theme, prefix: str = "--theme") -> Dict[str, str]:
    return {
        f"{prefix}-start": theme.start,
        f"{prefix}-end": theme.end,
        f"{prefix}-text-color": theme.text_color,
    }


# -------------------------
# Сериализация
# -------------------------
def themes_to_dict(themes: Dict[str, Theme]) -> Dict[str, Dict[str, str]]:
    return {key: theme.to_dict() for key, theme in themes.items()}


def themes_from_dict(data: Any) -> Dict[str, Theme]:
    """Валидные записи поверх встроенного набора, невалидные пропускаем."""
    themes = get_all_themes()
    if not isinstance(data, dict):
        return themes
    for key, value in data.items():
        if key not in DEFAULT_THEMES:
            logger.debug("Skipping unknown theme key %r", key)
            continue
        if not validate_theme(value):
            logger.warning("Skipping invalid theme %r: %r", key, value)
            continue
        themes[key] = Theme.from_dict(value)
    return themes


def serialize_themes(themes: Optional[Dict[str, Theme]] = None) -> str:
    envelope = {
        "themes": themes_to_dict(themes if themes is not None else DEFAULT_THEMES),
        "metadata": [meta.to_dict() for meta in THEME_METADATA],
        "version": THEMES_VERSION,
        "lastUpdated": datetime.now(tz=timezone.utc).isoformat(),
    }
    return json.dumps(envelope, ensure_ascii=False, indent=2)


def deserialize_theme_set(data: str) -> Dict[str, Theme]:
    try:
        parsed = json.loads(data)
    except (TypeError, ValueError) as e:
        logger.warning("Malformed theme envelope, using defaults: %s", e)
        return get_all_themes()

    if not isinstance(parsed, dict) or not isinstance(parsed.get("themes"), dict):
        logger.warning("Theme envelope has no 'themes' object, using defaults")
        return get_all_themes()

    return themes_from_dict(parsed["themes"])

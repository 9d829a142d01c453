from aiogram.utils.keyboard import InlineKeyboardBuilder

from tag_settings import FONTS, TagSettings
from themes import CATEGORIES, category_display_name, get_themes_by_category
from pricing import TABLE_DESIGN_TYPE

FONT_NAMES = {"montserrat": "Montserrat", "nunito": "Nunito", "inter": "Inter", "mont": "Mont"}


def _mark(on: bool) -> str:
    return "✅" if on else "▫️"


def main_menu_kb():
    kb = InlineKeyboardBuilder()
    kb.button(text="📋 Товары", callback_data="menu:items")
    kb.button(text="🎨 Дизайн", callback_data="menu:design")
    kb.button(text="🧾 PDF с ценниками", callback_data="menu:pdf")
    kb.button(text="🌐 HTML для печати", callback_data="menu:html")
    kb.button(text="⚙️ Настройки", callback_data="menu:settings")
    kb.button(text="🔳 QR-плакат", callback_data="menu:qr")
    kb.adjust(1, 1, 2, 1, 1)
    return kb.as_markup()


def back_cancel_kb(back_cb: str):
    kb = InlineKeyboardBuilder()
    kb.button(text="⬅️ Назад", callback_data=back_cb)
    kb.button(text="⛔️ Отмена", callback_data="menu:cancel")
    kb.adjust(2)
    return kb.as_markup()


def items_menu_kb(can_undo: bool, can_redo: bool, has_items: bool):
    kb = InlineKeyboardBuilder()
    kb.button(text="📥 Загрузить Excel", callback_data="items:excel")
    kb.button(text="📄 Шаблон Excel", callback_data="items:template")
    kb.button(text="📝 Вставить строки", callback_data="items:paste")
    kb.button(text="🔗 Google Таблица", callback_data="items:sheets")
    sizes = [2, 2]
    if has_items:
        kb.button(text="👀 Список", callback_data="items:list")
        kb.button(text="➕ Дублировать всё", callback_data="items:dup")
        kb.button(text="🗑️ Очистить", callback_data="items:clear")
        sizes.append(3)
    history = 0
    if can_undo:
        kb.button(text="↩️ Отменить", callback_data="items:undo")
        history += 1
    if can_redo:
        kb.button(text="↪️ Повторить", callback_data="items:redo")
        history += 1
    if history:
        sizes.append(history)
    kb.button(text="⬅️ Назад", callback_data="menu:cancel")
    sizes.append(1)
    kb.adjust(*sizes)
    return kb.as_markup()


def design_menu_kb(settings: TagSettings):
    kb = InlineKeyboardBuilder()
    for category in CATEGORIES:
        kb.button(text=category_display_name(category), callback_data=f"design:cat:{category}")
    sizes = [2, 2]
    if settings.has_table_designs:
        kb.button(
            text=f"{_mark(settings.design_type == TABLE_DESIGN_TYPE)} Дизайн из таблицы",
            callback_data="design:table",
        )
        sizes.append(1)
    kb.button(text=f"{_mark(settings.design)} Скидка на ценниках", callback_data="design:discount")
    kb.button(text=f"{_mark(settings.show_theme_labels)} Ленты NEW/SALE", callback_data="design:labels")
    kb.button(text="⬅️ Назад", callback_data="menu:cancel")
    sizes.extend([1, 1, 1])
    kb.adjust(*sizes)
    return kb.as_markup()


def themes_kb(category: str, current: str):
    kb = InlineKeyboardBuilder()
    for meta in get_themes_by_category(category):
        prefix = "✅ " if meta.id == current else ""
        kb.button(text=f"{prefix}{meta.emoji} {meta.name}", callback_data=f"design:theme:{meta.id}")
    kb.button(text="⬅️ Назад", callback_data="menu:design")
    kb.adjust(2)
    return kb.as_markup()


def settings_menu_kb():
    kb = InlineKeyboardBuilder()
    kb.button(text="💰 Размер скидки", callback_data="settings:amount")
    kb.button(text="📉 Макс. % скидки", callback_data="settings:percent")
    kb.button(text="✏️ Текст под скидкой", callback_data="settings:text")
    kb.button(text="🔤 Шрифт", callback_data="settings:font")
    kb.button(text="♻️ Сбросить дизайн", callback_data="settings:reset")
    kb.button(text="⬅️ Назад", callback_data="menu:cancel")
    kb.adjust(2, 2, 1, 1)
    return kb.as_markup()


def fonts_kb(current: str):
    kb = InlineKeyboardBuilder()
    for font in FONTS:
        prefix = "✅ " if font == current else ""
        kb.button(text=f"{prefix}{FONT_NAMES.get(font, font)}", callback_data=f"font:{font}")
    kb.button(text="⬅️ Назад", callback_data="menu:settings")
    kb.adjust(2)
    return kb.as_markup()

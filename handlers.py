import asyncio
import re
from typing import Dict

from aiogram import F, Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message
from aiogram.types.input_file import BufferedInputFile

from config import Config
from importers import (
    DataImportError,
    ImportResult,
    build_xlsx_template,
    load_items_from_google_sheet,
    load_items_from_xlsx,
    parse_clipboard_data,
)
from items import to_number
from keyboards import (
    back_cancel_kb,
    design_menu_kb,
    fonts_kb,
    items_menu_kb,
    main_menu_kb,
    settings_menu_kb,
    themes_kb,
)
from logger import get_logger
from pricing import TABLE_DESIGN_TYPE, format_number
from render import Fonts, fonts_for, make_pdf_qr_poster, safe_filename
from session import PriceTagSession
from storage import SessionStorage
from themes import CATEGORIES, category_description, category_display_name, get_theme_metadata

logger = get_logger(__name__)

router = Router()

WELCOME_TEXT = (
    "Привет! Я делаю ценники 🏷️\n\n"
    "• 📋 Загрузи товары: Excel, строки из таблицы или ссылка на Google Таблицу\n"
    "• 🎨 Выбери дизайн и скидку\n"
    "• 🧾 Получи PDF (18 ценников на листе) или HTML для печати\n\n"
    "Выбирай действие кнопками ниже 👇"
)

DONE_TEXT = "Готово. Что делаем дальше?"

LIST_LIMIT = 30


class ItemsFSM(StatesGroup):
    wait_xlsx = State()
    wait_paste = State()
    wait_sheet_link = State()


class SettingsFSM(StatesGroup):
    discount_amount = State()
    max_percent = State()
    discount_text = State()


class QrFSM(StatesGroup):
    link = State()


def is_xlsx(message: Message) -> bool:
    if not message.document:
        return False
    return (message.document.file_name or "").lower().endswith(".xlsx")


def _items_summary(session: PriceTagSession) -> str:
    store = session.store
    if not len(store):
        return "📋 Товаров пока нет."
    return f"📋 Товаров: {len(store)}"


def _import_report(result: ImportResult) -> str:
    text = f"✅ Загружено товаров: {result.accepted}"
    if result.rejected:
        text += f"\nПропущено строк без названия или цены: {result.rejected}"
    extras = []
    if result.has_table_designs:
        extras.append("дизайн")
    if result.has_table_discounts:
        extras.append("скидка")
    if extras:
        text += "\nВ таблице есть столбцы: " + ", ".join(extras) + ". Режим «Дизайн из таблицы» доступен в 🎨 Дизайн."
    return text


async def _show_items_menu(message: Message, session: PriceTagSession):
    store = session.store
    await message.answer(
        _items_summary(session),
        reply_markup=items_menu_kb(store.can_undo, store.can_redo, bool(len(store))),
    )


async def _apply_import(message: Message, state: FSMContext, sessions: SessionStorage, result: ImportResult):
    session = sessions.load(message.chat.id)
    session.apply_import(result)
    sessions.save(message.chat.id, session)
    await state.clear()
    await message.answer(_import_report(result))
    await _show_items_menu(message, session)


@router.message(CommandStart())
async def cmd_start(message: Message, state: FSMContext):
    await state.clear()
    await message.answer(WELCOME_TEXT, reply_markup=main_menu_kb())


@router.callback_query(F.data == "menu:cancel")
async def cb_cancel(query: CallbackQuery, state: FSMContext):
    await state.clear()
    await query.message.answer(WELCOME_TEXT, reply_markup=main_menu_kb())
    await query.answer()


# -------------------------
# Товары
# -------------------------
@router.callback_query(F.data == "menu:items")
async def cb_items(query: CallbackQuery, state: FSMContext, sessions: SessionStorage):
    await state.clear()
    await _show_items_menu(query.message, sessions.load(query.message.chat.id))
    await query.answer()


@router.callback_query(F.data == "items:template")
async def cb_items_template(query: CallbackQuery):
    xlsx = build_xlsx_template()
    await query.message.answer_document(BufferedInputFile(xlsx, filename="price_tags_template.xlsx"))
    await query.answer()


@router.callback_query(F.data == "items:excel")
async def cb_items_excel(query: CallbackQuery, state: FSMContext):
    await state.set_state(ItemsFSM.wait_xlsx)
    await query.message.answer(
        "📥 Пришли Excel (.xlsx).\n\n"
        "Столбцы: Название | Цена | Дизайн | Скидка | Цена за 2 | Цена от 3.\n"
        "Обязательны только первые два.",
        reply_markup=back_cancel_kb("menu:items"),
    )
    await query.answer()


@router.message(ItemsFSM.wait_xlsx)
async def items_receive_xlsx(message: Message, state: FSMContext, sessions: SessionStorage):
    if not is_xlsx(message):
        await message.answer("Пришли файл .xlsx (Excel).", reply_markup=back_cancel_kb("menu:items"))
        return

    file = await message.bot.get_file(message.document.file_id)
    fb = await message.bot.download_file(file.file_path)

    try:
        result = load_items_from_xlsx(fb.read())
    except DataImportError as e:
        logger.info("Excel import failed for chat %s: %s", message.chat.id, e)
        await message.answer(f"Ошибка в Excel: {e}")
        return

    await _apply_import(message, state, sessions, result)


@router.callback_query(F.data == "items:paste")
async def cb_items_paste(query: CallbackQuery, state: FSMContext):
    await state.set_state(ItemsFSM.wait_paste)
    await query.message.answer(
        "📝 Скопируй строки из таблицы и отправь одним сообщением.\n"
        "Первый столбец — название, второй — цена.",
        reply_markup=back_cancel_kb("menu:items"),
    )
    await query.answer()


@router.message(ItemsFSM.wait_paste)
async def items_receive_paste(message: Message, state: FSMContext, sessions: SessionStorage):
    result = parse_clipboard_data(message.text or "")
    if not result.items:
        await message.answer(
            "Не нашёл ни одной строки с названием и ценой. Попробуй ещё раз:",
            reply_markup=back_cancel_kb("menu:items"),
        )
        return
    await _apply_import(message, state, sessions, result)


@router.callback_query(F.data == "items:sheets")
async def cb_items_sheets(query: CallbackQuery, state: FSMContext):
    await state.set_state(ItemsFSM.wait_sheet_link)
    await query.message.answer(
        "🔗 Вставь ссылку на Google Таблицу.\nДоступ должен быть открыт по ссылке для просмотра.",
        reply_markup=back_cancel_kb("menu:items"),
    )
    await query.answer()


@router.message(ItemsFSM.wait_sheet_link)
async def items_receive_sheet(message: Message, state: FSMContext, sessions: SessionStorage):
    link = (message.text or "").strip()
    if not re.match(r"^https?://", link, flags=re.I):
        await message.answer("Ссылка должна начинаться с http:// или https://", reply_markup=back_cancel_kb("menu:items"))
        return

    await message.answer("⏳ Загружаю таблицу…")
    try:
        result = await asyncio.to_thread(load_items_from_google_sheet, link)
    except DataImportError as e:
        logger.info("Google Sheets import failed for chat %s: %s", message.chat.id, e)
        await message.answer(str(e), reply_markup=back_cancel_kb("menu:items"))
        return

    await _apply_import(message, state, sessions, result)


@router.callback_query(F.data == "items:list")
async def cb_items_list(query: CallbackQuery, sessions: SessionStorage):
    session = sessions.load(query.message.chat.id)
    items = session.items
    lines = []
    for n, item in enumerate(items[:LIST_LIMIT], start=1):
        line = f"{n}. {item.data} — {format_number(item.price)}"
        if item.discount_price < item.price:
            line += f" / {format_number(item.discount_price)}"
        lines.append(line)
    if len(items) > LIST_LIMIT:
        lines.append(f"… и ещё {len(items) - LIST_LIMIT}")
    await query.message.answer("\n".join(lines) if lines else "Список пуст.")
    await query.answer()


@router.callback_query(F.data.in_({"items:undo", "items:redo", "items:dup", "items:clear"}))
async def cb_items_history(query: CallbackQuery, sessions: SessionStorage):
    chat_id = query.message.chat.id
    session = sessions.load(chat_id)
    store = session.store
    action = query.data.split(":", 1)[1]

    if action == "undo":
        store.undo()
    elif action == "redo":
        store.redo()
    elif action == "dup":
        store.duplicate_items([item.id for item in store.items])
    elif action == "clear":
        store.clear_items()

    sessions.save(chat_id, session)
    await _show_items_menu(query.message, session)
    await query.answer()


# -------------------------
# Дизайн
# -------------------------
def _design_text(session: PriceTagSession) -> str:
    settings = session.settings
    if settings.design_type == TABLE_DESIGN_TYPE:
        current = "из таблицы"
    else:
        meta = get_theme_metadata(settings.design_type)
        current = f"{meta.emoji} {meta.name}" if meta else settings.design_type
    return f"🎨 Текущий дизайн: {current}\nВыбери категорию тем:"


@router.callback_query(F.data == "menu:design")
async def cb_design(query: CallbackQuery, state: FSMContext, sessions: SessionStorage):
    await state.clear()
    session = sessions.load(query.message.chat.id)
    await query.message.answer(_design_text(session), reply_markup=design_menu_kb(session.settings))
    await query.answer()


@router.callback_query(F.data.startswith("design:cat:"))
async def cb_design_category(query: CallbackQuery, sessions: SessionStorage):
    category = query.data.split(":", 2)[2]
    if category not in CATEGORIES:
        await query.answer("Неизвестная категория", show_alert=True)
        return
    session = sessions.load(query.message.chat.id)
    await query.message.answer(
        f"{category_display_name(category)}\n{category_description(category)}",
        reply_markup=themes_kb(category, session.settings.design_type),
    )
    await query.answer()


@router.callback_query(F.data.startswith("design:theme:"))
async def cb_design_theme(query: CallbackQuery, sessions: SessionStorage):
    chat_id = query.message.chat.id
    session = sessions.load(chat_id)
    session.settings.set_design_type(query.data.split(":", 2)[2])
    sessions.save(chat_id, session)
    await query.message.answer(_design_text(session), reply_markup=design_menu_kb(session.settings))
    await query.answer("Тема выбрана")


@router.callback_query(F.data.in_({"design:table", "design:discount", "design:labels"}))
async def cb_design_toggle(query: CallbackQuery, sessions: SessionStorage):
    chat_id = query.message.chat.id
    session = sessions.load(chat_id)
    settings = session.settings
    action = query.data.split(":", 1)[1]

    if action == "table":
        settings.set_design_type("default" if settings.table_mode else TABLE_DESIGN_TYPE)
    elif action == "discount":
        settings.set_design(not settings.design)
    elif action == "labels":
        settings.set_show_theme_labels(not settings.show_theme_labels)

    sessions.save(chat_id, session)
    await query.message.answer(_design_text(session), reply_markup=design_menu_kb(settings))
    await query.answer()


# -------------------------
# Настройки
# -------------------------
def _settings_text(session: PriceTagSession) -> str:
    s = session.settings
    return (
        "⚙️ Настройки\n\n"
        f"Скидка: {format_number(s.discount_amount)} ₽, но не больше {format_number(s.max_discount_percent)}%\n"
        f"Текст под скидкой: {s.discount_text!r}\n"
        f"Шрифт: {s.current_font}"
    )


@router.callback_query(F.data == "menu:settings")
async def cb_settings(query: CallbackQuery, state: FSMContext, sessions: SessionStorage):
    await state.clear()
    session = sessions.load(query.message.chat.id)
    await query.message.answer(_settings_text(session), reply_markup=settings_menu_kb())
    await query.answer()


@router.callback_query(F.data == "settings:amount")
async def cb_settings_amount(query: CallbackQuery, state: FSMContext):
    await state.set_state(SettingsFSM.discount_amount)
    await query.message.answer("💰 Введи размер скидки в рублях (например, 500):", reply_markup=back_cancel_kb("menu:settings"))
    await query.answer()


@router.message(SettingsFSM.discount_amount)
async def settings_amount(message: Message, state: FSMContext, sessions: SessionStorage):
    amount = to_number(message.text)
    if amount is None or amount < 0 or amount > 1_000_000:
        await message.answer("Нужно число от 0 до 1000000. Попробуй ещё раз:", reply_markup=back_cancel_kb("menu:settings"))
        return
    session = sessions.load(message.chat.id)
    session.settings.set_discount_amount(amount)
    sessions.save(message.chat.id, session)
    await state.clear()
    await message.answer(_settings_text(session), reply_markup=settings_menu_kb())


@router.callback_query(F.data == "settings:percent")
async def cb_settings_percent(query: CallbackQuery, state: FSMContext):
    await state.set_state(SettingsFSM.max_percent)
    await query.message.answer("📉 Введи максимальный процент скидки (0–100):", reply_markup=back_cancel_kb("menu:settings"))
    await query.answer()


@router.message(SettingsFSM.max_percent)
async def settings_percent(message: Message, state: FSMContext, sessions: SessionStorage):
    percent = to_number(message.text)
    if percent is None or not 0 <= percent <= 100:
        await message.answer("Нужно число от 0 до 100. Попробуй ещё раз:", reply_markup=back_cancel_kb("menu:settings"))
        return
    session = sessions.load(message.chat.id)
    session.settings.set_max_discount_percent(percent)
    sessions.save(message.chat.id, session)
    await state.clear()
    await message.answer(_settings_text(session), reply_markup=settings_menu_kb())


@router.callback_query(F.data == "settings:text")
async def cb_settings_text(query: CallbackQuery, state: FSMContext):
    await state.set_state(SettingsFSM.discount_text)
    await query.message.answer(
        "✏️ Введи текст под ценой со скидкой (до двух строк):",
        reply_markup=back_cancel_kb("menu:settings"),
    )
    await query.answer()


@router.message(SettingsFSM.discount_text)
async def settings_text(message: Message, state: FSMContext, sessions: SessionStorage):
    text = (message.text or "").strip()
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines or len(lines) > 2 or any(len(line) > 40 for line in lines):
        await message.answer(
            "Текст должен быть 1–2 строки, до 40 символов в каждой. Попробуй ещё раз:",
            reply_markup=back_cancel_kb("menu:settings"),
        )
        return
    session = sessions.load(message.chat.id)
    session.settings.set_discount_text("\n".join(lines))
    sessions.save(message.chat.id, session)
    await state.clear()
    await message.answer(_settings_text(session), reply_markup=settings_menu_kb())


@router.callback_query(F.data == "settings:font")
async def cb_settings_font(query: CallbackQuery, sessions: SessionStorage):
    session = sessions.load(query.message.chat.id)
    await query.message.answer("🔤 Выбери шрифт:", reply_markup=fonts_kb(session.settings.current_font))
    await query.answer()


@router.callback_query(F.data.startswith("font:"))
async def cb_font(query: CallbackQuery, sessions: SessionStorage):
    chat_id = query.message.chat.id
    session = sessions.load(chat_id)
    session.settings.set_current_font(query.data.split(":", 1)[1])
    sessions.save(chat_id, session)
    await query.message.answer(_settings_text(session), reply_markup=settings_menu_kb())
    await query.answer()


@router.callback_query(F.data == "settings:reset")
async def cb_settings_reset(query: CallbackQuery, sessions: SessionStorage):
    chat_id = query.message.chat.id
    session = sessions.load(chat_id)
    session.settings.reset()
    sessions.save(chat_id, session)
    await query.message.answer("♻️ Дизайн сброшен.\n\n" + _settings_text(session), reply_markup=settings_menu_kb())
    await query.answer()


@router.message(Command("reset"))
async def cmd_reset(message: Message, state: FSMContext, sessions: SessionStorage):
    await state.clear()
    sessions.drop(message.chat.id)
    await message.answer("Всё очищено: товары и настройки.", reply_markup=main_menu_kb())


# -------------------------
# Генерация
# -------------------------
@router.callback_query(F.data == "menu:pdf")
async def cb_pdf(query: CallbackQuery, sessions: SessionStorage, fonts: Dict[str, Fonts], config: Config):
    session = sessions.load(query.message.chat.id)
    if not len(session.store):
        await query.answer("Сначала загрузи товары", show_alert=True)
        return

    await query.answer()
    await query.message.answer(f"⏳ Генерирую PDF… ценников: {len(session.store)}")
    pdf_bytes = session.render_pdf(
        fonts,
        page_format=config.page_format,
        margin=config.page_margin,
        per_page=config.items_per_page,
    )
    await query.message.answer_document(BufferedInputFile(pdf_bytes, filename=safe_filename("Ценники") + ".pdf"))
    await query.message.answer(DONE_TEXT, reply_markup=main_menu_kb())


@router.callback_query(F.data == "menu:html")
async def cb_html(query: CallbackQuery, sessions: SessionStorage, config: Config):
    session = sessions.load(query.message.chat.id)
    if not len(session.store):
        await query.answer("Сначала загрузи товары", show_alert=True)
        return

    await query.answer()
    html = session.render_html(page_format=config.page_format, margin=config.page_margin, per_page=config.items_per_page)
    await query.message.answer_document(
        BufferedInputFile(html.encode("utf-8"), filename="price_tags.html"),
        caption="Открой в браузере и распечатай (Ctrl+P).",
    )
    await query.message.answer(DONE_TEXT, reply_markup=main_menu_kb())


@router.callback_query(F.data == "menu:qr")
async def cb_qr(query: CallbackQuery, state: FSMContext):
    await state.set_state(QrFSM.link)
    await query.message.answer("🔳 Вставь ссылку на телеграм-канал (для QR):", reply_markup=back_cancel_kb("menu:cancel"))
    await query.answer()


@router.message(QrFSM.link)
async def qr_link(message: Message, state: FSMContext, sessions: SessionStorage, fonts: Dict[str, Fonts], config: Config):
    link = (message.text or "").strip()
    if not link or len(link) > 300:
        await message.answer("Ссылка выглядит странно. Вставь корректную ссылку:", reply_markup=back_cancel_kb("menu:cancel"))
        return
    if not re.match(r"^https?://", link, flags=re.I):
        await message.answer("Ссылка должна начинаться с http:// или https://", reply_markup=back_cancel_kb("menu:cancel"))
        return

    session = sessions.load(message.chat.id)
    await message.answer("⏳ Генерирую плакат…")
    pdf_bytes = make_pdf_qr_poster(fonts_for(fonts, session.settings.current_font), link, config.page_format)
    await message.answer_document(BufferedInputFile(pdf_bytes, filename="QR.pdf"))

    await state.clear()
    await message.answer(DONE_TEXT, reply_markup=main_menu_kb())

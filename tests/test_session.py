import json

from importers import ImportResult, parse_clipboard_data
from items import new_item
from layout import build_pages
from session import PriceTagSession
from storage import STORAGE_VERSION, SessionStorage


def test_discount_follows_settings():
    session = PriceTagSession()
    item = session.store.add_item(new_item("Чай", 2999))
    assert item.discount_price == 2999

    session.settings.set_design(True)
    assert session.store.get(item.id).discount_price == 2849

    session.settings.set_discount_amount(100)
    assert session.store.get(item.id).discount_price == 2899
    assert len(session.store.history) == 2


def test_apply_import_sets_table_flags():
    session = PriceTagSession()
    result = parse_clipboard_data("Чай;2999;sale;да\nКофе;1000;new;нет")
    session.apply_import(result)

    assert session.settings.has_table_designs
    assert session.settings.has_table_discounts
    assert session.store.column_labels[:2] == ["Название", "Цена"]

    session.settings.set_design(True)
    session.settings.set_design_type("table")
    assert session.settings.design is False
    tea, coffee = session.items
    assert tea.discount_price == 2849
    assert coffee.discount_price == 1000


def test_apply_import_without_designs_leaves_table_mode():
    session = PriceTagSession()
    session.apply_import(ImportResult(items=[new_item("a", 100)], has_table_designs=True))
    session.settings.set_design_type("table")
    session.apply_import(ImportResult(items=[new_item("b", 200)]))
    assert session.settings.design_type == "default"


def test_global_theme_overrides_imported_designs():
    session = PriceTagSession()
    session.apply_import(parse_clipboard_data("Чай\t100\tsale\nКофе\t200\tnew"))
    assert session.settings.has_table_designs

    session.settings.set_design_type("ocean")
    tags = build_pages(session.items, session.settings)[0].tags
    assert [t.design_type for t in tags] == ["ocean", "ocean"]

    session.settings.set_design_type("table")
    tags = build_pages(session.items, session.settings)[0].tags
    assert [t.design_type for t in tags] == ["sale", "new"]


def test_renders():
    session = PriceTagSession()
    session.settings.set_discount_text("members price")
    session.store.add_item(new_item("Tea", 100))
    assert session.render_pdf().startswith(b"%PDF")
    assert "print-page-last" in session.render_html()


def test_session_round_trip():
    session = PriceTagSession()
    session.settings.set_design(True)
    session.store.add_item(new_item("Чай", 2999))
    session.store.add_item(new_item("Кофе", 600))

    restored = PriceTagSession.from_dict(json.loads(json.dumps(session.to_dict())))
    assert restored.settings == session.settings
    assert restored.items == session.items
    assert restored.store.history_index == session.store.history_index
    # подписка на настройки восстановлена
    restored.settings.set_design(False)
    assert restored.items[0].discount_price == 2999


def test_from_dict_junk():
    session = PriceTagSession.from_dict("junk")
    assert session.items == ()


class TestSessionStorage:
    def test_persists_between_instances(self, tmp_path):
        path = tmp_path / "sessions.json"
        storage = SessionStorage(path)
        session = storage.load(42)
        session.store.add_item(new_item("Чай", 2999))
        session.settings.set_design_type("ocean")
        storage.save(42, session)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == STORAGE_VERSION
        assert "42" in data["sessions"]

        reloaded = SessionStorage(path).load(42)
        assert [i.data for i in reloaded.items] == ["Чай"]
        assert reloaded.settings.design_type == "ocean"

    def test_same_object_per_chat(self, tmp_path):
        storage = SessionStorage(tmp_path / "s.json")
        assert storage.load(1) is storage.load(1)
        assert storage.load(1) is not storage.load(2)

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "sessions.json"
        path.write_text("{not json", encoding="utf-8")
        storage = SessionStorage(path)
        assert storage.chat_ids() == []
        assert storage.load(7).items == ()
        assert json.loads(path.read_text(encoding="utf-8"))["sessions"] == {}

    def test_unknown_version_starts_empty(self, tmp_path):
        path = tmp_path / "sessions.json"
        path.write_text(json.dumps({"version": 99, "sessions": {"1": {}}}), encoding="utf-8")
        assert SessionStorage(path).chat_ids() == []

    def test_drop(self, tmp_path):
        path = tmp_path / "sessions.json"
        storage = SessionStorage(path)
        session = storage.load(5)
        session.store.add_item(new_item("Чай", 100))
        storage.save(5, session)
        storage.drop(5)
        assert SessionStorage(path).chat_ids() == []

    def test_new_chat_gets_label_default(self, tmp_path):
        path = tmp_path / "sessions.json"
        storage = SessionStorage(path, show_theme_labels=True)
        session = storage.load(3)
        assert session.settings.show_theme_labels is True

        # сохранённые настройки важнее значения по умолчанию
        session.settings.set_show_theme_labels(False)
        storage.save(3, session)
        assert SessionStorage(path, show_theme_labels=True).load(3).settings.show_theme_labels is False

    def test_bad_stored_id_is_skipped(self, tmp_path):
        path = tmp_path / "sessions.json"
        items = [
            {"id": "abc", "data": "битый", "price": 100},
            {"id": 7, "data": "Чай", "price": 2999},
        ]
        data = {"version": STORAGE_VERSION, "sessions": {"9": {"store": {"items": items}}}}
        path.write_text(json.dumps(data), encoding="utf-8")

        session = SessionStorage(path).load(9)
        assert [i.data for i in session.items] == ["Чай"]

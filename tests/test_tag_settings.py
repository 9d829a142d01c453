from tag_settings import DEFAULT_DISCOUNT_TEXT, TagSettings
from themes import DEFAULT_THEMES, Theme


class TestTableRule:
    def test_table_with_table_discounts_turns_global_discount_off(self):
        settings = TagSettings()
        settings.set_has_table_discounts(True)
        settings.set_design(True)
        settings.set_design_type("table")
        assert settings.design is False
        assert settings.table_mode

    def test_table_without_table_discounts_keeps_global_discount(self):
        settings = TagSettings()
        settings.set_design(True)
        settings.set_design_type("table")
        assert settings.design is True

    def test_other_design_types_keep_global_discount(self):
        settings = TagSettings()
        settings.set_has_table_discounts(True)
        settings.set_design(True)
        settings.set_design_type("ocean")
        assert settings.design is True


def test_unknown_design_type_ignored():
    settings = TagSettings()
    settings.set_design_type("ocean")
    settings.set_design_type("rainbow")
    assert settings.design_type == "ocean"


def test_setters_validate():
    settings = TagSettings()
    settings.set_current_font("comic-sans")
    settings.set_discount_amount(-1)
    settings.set_max_discount_percent(150)
    assert settings.current_font == "montserrat"
    assert settings.discount_amount == 500
    assert settings.max_discount_percent == 5


def test_listeners_notified():
    settings = TagSettings()
    calls = []
    unsubscribe = settings.subscribe(lambda s: calls.append(s.design))
    settings.set_design(True)
    unsubscribe()
    settings.set_design(False)
    assert calls == [True]


def test_reset_keeps_font_and_discount_numbers():
    settings = TagSettings()
    settings.set_current_font("inter")
    settings.set_discount_amount(300)
    settings.set_has_table_designs(True)
    settings.set_has_table_discounts(True)
    settings.set_design(True)
    settings.set_design_type("table")
    settings.set_themes({"ocean": Theme("#010101", "#020202", "#ffffff")})

    settings.reset()

    assert settings.design is False
    assert settings.design_type == "default"
    assert settings.themes == DEFAULT_THEMES
    assert not settings.has_table_designs
    assert not settings.has_table_discounts
    assert settings.current_font == "inter"
    assert settings.discount_amount == 300


def test_discount_settings_follow_fields():
    settings = TagSettings()
    settings.set_discount_amount(200)
    settings.set_max_discount_percent(10)
    assert settings.discount_settings.discount_amount == 200
    assert settings.discount_settings.max_discount_percent == 10


def test_dict_round_trip():
    settings = TagSettings()
    settings.set_design(True)
    settings.set_design_type("sale")
    settings.set_current_font("nunito")
    settings.set_discount_text("только\nсегодня")
    settings.set_show_theme_labels(True)
    settings.set_cutting_line_color("#ff0000")
    assert TagSettings.from_dict(settings.to_dict()) == settings


def test_from_dict_falls_back_to_defaults():
    settings = TagSettings.from_dict({
        "designType": "rainbow",
        "currentFont": "papyrus",
        "discountAmount": "много",
        "maxDiscountPercent": 300,
        "themes": {"ocean": {"start": "nope"}},
    })
    assert settings.design_type == "default"
    assert settings.current_font == "montserrat"
    assert settings.discount_amount == 500
    assert settings.max_discount_percent == 5
    assert settings.discount_text == DEFAULT_DISCOUNT_TEXT
    assert settings.themes == DEFAULT_THEMES
    assert TagSettings.from_dict("junk") == TagSettings()

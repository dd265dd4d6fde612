"""Tests for translation bundles and lookup fallback."""

import json

import pytest

from afkguard.i18n import LocalizationError, Localizer


@pytest.fixture
def small_localizer():
    return Localizer(
        {
            "en_us": {"greeting": "Hello {name}", "pair": "{a} and {b}", "only_en": "English"},
            "pt_br": {"greeting": "Olá {name}"},
        }
    )


def test_resolve_in_requested_language(small_localizer):
    assert small_localizer.resolve("pt_br", "greeting", {"name": "Ana"}) == "Olá Ana"


def test_missing_key_falls_back_to_default_language(small_localizer):
    assert small_localizer.resolve("pt_br", "only_en") == "English"


def test_unknown_language_falls_back_to_default(small_localizer):
    assert small_localizer.resolve("xx_yy", "greeting", {"name": "Bo"}) == "Hello Bo"
    assert small_localizer.resolve(None, "only_en") == "English"


def test_unknown_key_returns_key(small_localizer):
    assert small_localizer.resolve("en_us", "does_not_exist") == "does_not_exist"


def test_every_placeholder_occurrence_is_replaced(small_localizer):
    bundle = Localizer({"en_us": {"echo": "{x}-{x}-{y}"}})
    assert bundle.resolve("en_us", "echo", {"x": 1, "y": "z"}) == "1-1-z"
    assert small_localizer.resolve("en_us", "pair", {"a": "A"}) == "A and {b}"


def test_normalize_platform_locales(small_localizer):
    assert small_localizer.normalize("pt-BR") == "pt_br"
    assert small_localizer.normalize("en-GB") == "en_us"
    assert small_localizer.normalize("pt") == "pt_br"
    assert small_localizer.normalize("fr") is None
    assert small_localizer.normalize(None) is None


def test_load_bundled_translations(localizer):
    assert {"en_us", "pt_br", "es_es"} <= set(localizer.languages)
    assert localizer.has_language("PT_BR")
    assert not localizer.has_language("")


def test_bundled_languages_are_complete(localizer):
    english = set(localizer._bundles["en_us"])
    for language in localizer.languages:
        assert set(localizer._bundles[language]) == english, language


def test_malformed_bundle_is_fatal(temp_data_dir):
    (temp_data_dir / "en_us.json").write_text(json.dumps({"ok": "fine"}), encoding="utf-8")
    (temp_data_dir / "de_de.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(LocalizationError):
        Localizer.load(temp_data_dir)


def test_non_string_value_is_fatal(temp_data_dir):
    (temp_data_dir / "en_us.json").write_text(json.dumps({"count": 3}), encoding="utf-8")

    with pytest.raises(LocalizationError):
        Localizer.load(temp_data_dir)


def test_missing_default_bundle_is_fatal(temp_data_dir):
    (temp_data_dir / "pt_br.json").write_text(json.dumps({"ok": "sim"}), encoding="utf-8")

    with pytest.raises(LocalizationError):
        Localizer.load(temp_data_dir)


def test_missing_directory_is_fatal(temp_data_dir):
    with pytest.raises(LocalizationError):
        Localizer.load(temp_data_dir / "missing")


def test_substituted_values_are_not_expanded_again(localizer):
    text = localizer.resolve(
        "en_us",
        "setup_success",
        {"channel": "{language}", "language": "EN_US", "minutes": 5},
    )

    assert text == "AFK channel set to **{language}**, language **EN_US**, idle timeout **5** minute(s)."

import json
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from receipt_tracker.domain.categorizer import Categorizer
from receipt_tracker.domain.models import KeywordRule
from receipt_tracker.errors import SettingsError
from receipt_tracker.settings import SettingsStore, open_store


def test_missing_file_means_no_rules(tmp_path):
    store = SettingsStore(str(tmp_path / "settings.json"))
    assert store.keyword_rules() == ()
    assert store.currency() == "USD"


def test_add_rule_lowercases_and_persists(tmp_path):
    path = tmp_path / "nested" / "settings.json"
    store = SettingsStore(str(path))
    rule = store.add_keyword_rule("  Oat MILK ", " Groceries ")
    assert rule == KeywordRule("oat milk", "Groceries")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {"keyword_rules": {"oat milk": "Groceries"}}
    assert SettingsStore(str(path)).keyword_rules() == (rule,)


def test_rule_order_is_insertion_order(tmp_path):
    store = SettingsStore(str(tmp_path / "settings.json"))
    store.add_keyword_rule("milk", "Dairy")
    store.add_keyword_rule("oat", "Breakfast")
    store.add_keyword_rule("milk", "Custom")
    assert store.keyword_rules() == (KeywordRule("milk", "Custom"), KeywordRule("oat", "Breakfast"))


def test_remove_rule(tmp_path):
    store = SettingsStore(str(tmp_path / "settings.json"))
    store.add_keyword_rule("milk", "Dairy")
    assert store.remove_keyword_rule("MILK") is True
    assert store.remove_keyword_rule("milk") is False
    assert store.keyword_rules() == ()


@pytest.mark.parametrize("keyword, category", [("", "X"), ("   ", "X"), ("tea", ""), ("tea", "  ")])
def test_blank_rule_is_rejected(tmp_path, keyword, category):
    store = SettingsStore(str(tmp_path / "settings.json"))
    with pytest.raises(SettingsError):
        store.add_keyword_rule(keyword, category)
    assert not (tmp_path / "settings.json").exists()


def test_corrupt_file_is_ignored(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    store = SettingsStore(str(path))
    assert store.keyword_rules() == ()

    path.write_text('["milk"]', encoding="utf-8")
    assert store.keyword_rules() == ()


def test_other_keys_survive_rule_updates(tmp_path):
    store = SettingsStore(str(tmp_path / "settings.json"))
    assert store.set_currency("eur") == "EUR"
    store.add_keyword_rule("milk", "Dairy")
    assert store.currency() == "EUR"
    with pytest.raises(SettingsError):
        store.set_currency("euro")


def test_unwritable_location_raises_settings_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = SettingsStore(str(blocker / "settings.json"))
    with pytest.raises(SettingsError):
        store.add_keyword_rule("milk", "Dairy")


def test_categorizer_sees_new_rules_immediately(tmp_path):
    store = SettingsStore(str(tmp_path / "settings.json"))
    categorizer = Categorizer(store)
    assert categorizer.categorize("Milk 2L") == "Groceries"
    store.add_keyword_rule("milk", "Custom")
    assert categorizer.categorize("Milk 2L") == "Custom"


def test_open_store_honors_env(tmp_path, monkeypatch):
    target = tmp_path / "elsewhere" / "rules.json"
    monkeypatch.setenv("RECEIPT_SETTINGS_PATH", str(target))
    assert open_store(str(tmp_path)).path == str(target)


def test_open_store_defaults_to_var_dir(tmp_path, monkeypatch):
    monkeypatch.delenv("RECEIPT_SETTINGS_PATH", raising=False)
    (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")
    sub = tmp_path / "a" / "b"
    sub.mkdir(parents=True)
    assert open_store(str(sub)).path == str(tmp_path / "var" / "settings.json")

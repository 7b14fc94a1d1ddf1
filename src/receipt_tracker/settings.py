"""User settings persisted as a small JSON document.

Layout::

    {"keyword_rules": {"oat milk": "Groceries", ...}, "currency": "USD"}

Rules keep their insertion order, which is also their matching priority.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from typing import Any, Dict, Optional, Tuple

from .domain.categorizer import coerce_rules
from .domain.models import KeywordRule
from .errors import SettingsError
from .logging import get_logger

log = get_logger("settings")

DEFAULT_CURRENCY = "USD"


class SettingsStore:
    def __init__(self, path: str) -> None:
        self.path = os.path.abspath(path)
        self._write_lock = threading.Lock()

    # ---------------- read ----------------
    def _load(self) -> Dict[str, Any]:
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.warning(f"Failed to read settings at {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            log.warning(f"Ignoring settings at {self.path}: expected a JSON object")
            return {}
        return data

    def keyword_rules(self) -> Tuple[KeywordRule, ...]:
        """Return the current user rules, re-read from disk on every call."""
        raw = self._load().get("keyword_rules")
        if not isinstance(raw, dict):
            return ()
        return coerce_rules(raw)

    def currency(self) -> str:
        v = self._load().get("currency")
        return v if isinstance(v, str) and len(v) == 3 else DEFAULT_CURRENCY

    # ---------------- write ----------------
    def _save(self, data: Dict[str, Any]) -> None:
        folder = os.path.dirname(self.path)
        try:
            os.makedirs(folder, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=".settings-", suffix=".json", dir=folder)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise SettingsError(f"Could not write settings to {self.path}: {e}") from e

    def _rules_dict(self, data: Dict[str, Any]) -> Dict[str, str]:
        return {r.keyword: r.category for r in coerce_rules(data.get("keyword_rules") or {})}

    def add_keyword_rule(self, keyword: str, category: str) -> KeywordRule:
        """Add or replace a rule; a replaced rule keeps its priority slot."""
        kw = (keyword or "").strip().lower()
        cat = (category or "").strip()
        if not kw:
            raise SettingsError("keyword must not be empty")
        if not cat:
            raise SettingsError("category must not be empty")
        with self._write_lock:
            data = self._load()
            rules = self._rules_dict(data)
            rules[kw] = cat
            data["keyword_rules"] = rules
            self._save(data)
        log.info(f"Saved keyword rule '{kw}' -> {cat}")
        return KeywordRule(kw, cat)

    def remove_keyword_rule(self, keyword: str) -> bool:
        kw = (keyword or "").strip().lower()
        with self._write_lock:
            data = self._load()
            rules = self._rules_dict(data)
            if kw not in rules:
                return False
            del rules[kw]
            data["keyword_rules"] = rules
            self._save(data)
        log.info(f"Removed keyword rule '{kw}'")
        return True

    def set_currency(self, code: str) -> str:
        cur = (code or "").strip().upper()
        if len(cur) != 3 or not cur.isalpha():
            raise SettingsError("currency must be a 3-letter code")
        with self._write_lock:
            data = self._load()
            data["currency"] = cur
            self._save(data)
        return cur


def open_store(dotenv_dir: Optional[str] = None) -> SettingsStore:
    """Return the store at the configured settings path."""
    from .config import load_settings_path

    return SettingsStore(load_settings_path(dotenv_dir or os.getcwd()))

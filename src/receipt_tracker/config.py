import os
from typing import Dict, Optional, Tuple

from dotenv import dotenv_values

from .logging import get_logger
from .paths import expand_abs, find_project_root, var_dir

log = get_logger("config")

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "qwen2.5vl:7b"
SETTINGS_FILENAME = "settings.json"
OCR_BACKENDS = ("ollama", "tesseract")

_TRUTHY = {"1", "true", "yes", "on"}


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    This lets the CLI run from subdirectories and still pick up the
    project-level `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Return key/value pairs of the nearest .env; does not mutate environment."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    try:
        values = dotenv_values(path, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.warning(f"Failed reading .env: {e}")
        return {}
    env = {k: v.strip() for k, v in values.items() if v is not None}
    log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    return env


def _lookup(dotenv_dir: str, key: str) -> Optional[str]:
    v = os.environ.get(key)
    if v:
        return v.strip()
    v = _read_dotenv(dotenv_dir).get(key)
    return v.strip() if v else None


def load_settings_path(dotenv_dir: str) -> str:
    """Return the user settings file path.

    RECEIPT_SETTINGS_PATH wins; otherwise var/settings.json under the
    project root containing dotenv_dir.
    """
    v = _lookup(dotenv_dir, "RECEIPT_SETTINGS_PATH")
    if v:
        return expand_abs(v)
    return os.path.join(var_dir(find_project_root(dotenv_dir)), SETTINGS_FILENAME)


def load_ollama(dotenv_dir: str) -> Tuple[str, str]:
    """Return (ollama_url, ollama_model) with sensible defaults."""
    url = _lookup(dotenv_dir, "OLLAMA_URL") or DEFAULT_OLLAMA_URL
    model = _lookup(dotenv_dir, "OLLAMA_MODEL") or DEFAULT_OLLAMA_MODEL
    return url, model


def load_debug_enabled(dotenv_dir: str) -> bool:
    v = _lookup(dotenv_dir, "RECEIPT_DEBUG")
    return bool(v) and v.lower() in _TRUTHY


def load_ocr_backend(dotenv_dir: str) -> str:
    v = (_lookup(dotenv_dir, "RECEIPT_OCR_BACKEND") or "ollama").lower()
    if v not in OCR_BACKENDS:
        log.warning(f"Unknown RECEIPT_OCR_BACKEND '{v}'; using ollama")
        return "ollama"
    return v

import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from receipt_tracker import config
from receipt_tracker.logging import RecentLogBuffer, clear_recent_logs, get_logger, recent_logs


def test_get_logger_is_configured_once():
    first = get_logger("unit-test")
    second = get_logger("unit-test")
    assert first is second
    assert first.name == "receipt_tracker.unit-test"
    assert first.propagate is False
    assert len(first.handlers) == len(second.handlers)


def test_recent_logs_filter_by_tag_and_level():
    clear_recent_logs()
    log = get_logger("buffer-test")
    log.debug("parsing started")
    log.warning("odd total")
    get_logger("other-test").info("unrelated")

    tagged = recent_logs(tag="buffer")
    assert [e.message for e in tagged] == ["parsing started", "odd total"]
    assert [e.level for e in tagged] == ["D", "W"]
    assert [e.message for e in recent_logs(level="warning")] == ["odd total"]
    assert "[W] buffer-test: odd total" in tagged[1].formatted()


def test_buffer_keeps_last_entries_only():
    buf = RecentLogBuffer(capacity=3)
    logger = logging.getLogger("receipt_tracker.capacity-test")
    logger.addHandler(buf)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    try:
        for i in range(5):
            logger.info(f"line {i}")
    finally:
        logger.removeHandler(buf)
    assert [e.message for e in buf.entries()] == ["line 2", "line 3", "line 4"]
    assert buf.entries()[0].tag == "capacity-test"


def test_env_beats_dotenv(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("OLLAMA_URL=http://from-dotenv:1\nOLLAMA_MODEL=llava\n", encoding="utf-8")
    sub = tmp_path / "nested"
    sub.mkdir()
    monkeypatch.delenv("OLLAMA_MODEL", raising=False)
    monkeypatch.setenv("OLLAMA_URL", "http://from-env:2")

    assert config.load_ollama(str(sub)) == ("http://from-env:2", "llava")


def test_defaults_without_dotenv(tmp_path, monkeypatch):
    for key in ("OLLAMA_URL", "OLLAMA_MODEL", "RECEIPT_DEBUG", "RECEIPT_OCR_BACKEND"):
        monkeypatch.delenv(key, raising=False)
    assert config.load_ollama(str(tmp_path)) == (config.DEFAULT_OLLAMA_URL, config.DEFAULT_OLLAMA_MODEL)
    assert config.load_debug_enabled(str(tmp_path)) is False
    assert config.load_ocr_backend(str(tmp_path)) == "ollama"


def test_debug_and_backend_switches(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("RECEIPT_DEBUG=yes\nRECEIPT_OCR_BACKEND=Tesseract\n", encoding="utf-8")
    monkeypatch.delenv("RECEIPT_DEBUG", raising=False)
    monkeypatch.delenv("RECEIPT_OCR_BACKEND", raising=False)
    assert config.load_debug_enabled(str(tmp_path)) is True
    assert config.load_ocr_backend(str(tmp_path)) == "tesseract"

    monkeypatch.setenv("RECEIPT_OCR_BACKEND", "abbyy")
    assert config.load_ocr_backend(str(tmp_path)) == "ollama"

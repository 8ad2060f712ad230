# tests/test_logging_conf.py
import logging

from studiq.logging_conf import setup_logging


def test_setup_logging_is_idempotent_and_quiets_http_clients():
    logger = setup_logging("WARNING")
    handlers = list(logger.handlers)

    assert setup_logging("DEBUG") is logger
    assert logger.handlers == handlers
    assert len(handlers) >= 1
    assert logger.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_level_falls_back_to_environment(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.setenv("ENV", "test")
    assert setup_logging().level == logging.INFO

    monkeypatch.setenv("LOG_LEVEL", "error")
    assert setup_logging().level == logging.ERROR

    monkeypatch.setenv("LOG_LEVEL", "chatty")
    assert setup_logging().level == logging.INFO

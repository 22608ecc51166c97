import logging
import sys

from uri_image import logger as ui_logger


def _stderr_handlers(base: logging.Logger) -> list:
    return [h for h in base.handlers if isinstance(h, logging.StreamHandler) and h.stream is sys.stderr]


def test_setup_logger_idempotent_handlers():
    """Calling setup_logger() repeatedly should leave exactly one stderr StreamHandler."""
    base = ui_logger.setup_logger(level=logging.DEBUG)
    _ = ui_logger.setup_logger(level=logging.DEBUG)
    assert len(_stderr_handlers(base)) == 1
    assert base.propagate is False


def test_env_level_override(monkeypatch):
    monkeypatch.setenv("URI_IMAGE_LOG_LEVEL", "warning")
    base = ui_logger.setup_logger(level=logging.DEBUG)
    assert base.level == logging.WARNING
    monkeypatch.delenv("URI_IMAGE_LOG_LEVEL")
    assert ui_logger.setup_logger(level=logging.INFO).level == logging.INFO


def test_category_filter(monkeypatch):
    monkeypatch.setenv("URI_IMAGE_LOG_CATS", "decoder, cancelable")
    base = ui_logger.setup_logger()
    handler = _stderr_handlers(base)[0]

    def _record(name: str) -> logging.LogRecord:
        return logging.LogRecord(name, logging.INFO, __file__, 1, "msg", None, None)

    assert handler.filter(_record("uri_image.decoder"))
    assert handler.filter(_record("uri_image.cancelable"))
    assert not handler.filter(_record("uri_image.loader"))

    monkeypatch.delenv("URI_IMAGE_LOG_CATS")
    ui_logger.setup_logger()
    assert handler.filter(_record("uri_image.loader"))


def test_get_logger_child():
    assert ui_logger.get_logger("probe").name == "uri_image.probe"
    assert ui_logger.get_logger().name == "uri_image"

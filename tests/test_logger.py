import logging

from repoimport.logger import configure_logging, get_logger


def test_log_file_replaces_console_and_quiets_urllib3(tmp_path) -> None:
    log_path = tmp_path / "logs" / "import.log"
    configure_logging(log_file=log_path)
    try:
        get_logger("repoimport.tests.file_sink").info("file_sink_ready", answer=42)
        logging.getLogger("urllib3").info("connection pool chatter")
        root_handlers = logging.getLogger().handlers
        assert len(root_handlers) == 1
        assert isinstance(root_handlers[0], logging.FileHandler)
        assert logging.getLogger("urllib3").level == logging.WARNING
    finally:
        configure_logging(console=False)

    text = log_path.read_text(encoding="utf-8")
    assert "file_sink_ready" in text
    assert "answer=42" in text
    assert "connection pool chatter" not in text


def test_silent_configuration_uses_null_handler() -> None:
    configure_logging(console=False)
    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.NullHandler)

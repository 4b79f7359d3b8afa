"""Unit tests for logging setup and the per-request log tag."""

import contextvars
import logging

from app.core.logger import RequestFormatter, request_tag, set_request_context, setup_logging


def _record(message: str = "hello") -> logging.LogRecord:
    return logging.LogRecord("app.test", logging.INFO, __file__, 1, message, None, None)


def test_lines_outside_requests_have_no_tag():
    formatter = RequestFormatter(fmt="[%(name)s] %(request)s%(message)s")
    line = contextvars.Context().run(formatter.format, _record("plain"))
    assert line == "[app.test] plain"


def test_lines_inside_a_request_carry_the_nonce_prefix():
    formatter = RequestFormatter(fmt="%(request)s%(message)s")

    def scenario():
        set_request_context("5f0c2a1e-8b7d-4c3e-9f00-1234567890ab")
        return request_tag(), formatter.format(_record("rendering"))

    tag, line = contextvars.Context().run(scenario)
    assert tag == "[REQ:5f0c2a1e] "
    assert line == "[REQ:5f0c2a1e] rendering"


def test_setup_logging_installs_console_and_file_handlers(tmp_path):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    log_file = tmp_path / "server.log"
    try:
        setup_logging(console_level="WARNING", log_file=str(log_file))
        console, file_handler = root.handlers
        assert console.level == logging.WARNING
        assert file_handler.level == logging.DEBUG

        logging.getLogger("app.test").debug("written to file only")
        file_handler.flush()
        assert "[DEBUG] [app.test] written to file only" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = handlers
        root.setLevel(level)

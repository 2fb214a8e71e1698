"""
JSON log lines and the per-request logger.
"""
import json
import logging

from logging_setup import JsonFormatter, RequestLogger


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.setFormatter(JsonFormatter())
        self.lines = []

    def emit(self, record):
        self.lines.append(json.loads(self.format(record)))


def _logger(name="unsentpro.test"):
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = ListHandler()
    logger.handlers = [handler]
    return logger, handler


def test_line_is_single_json_object():
    logger, handler = _logger()

    logger.warning("Apple credentials incomplete", extra={"context": {"missing": ["APPLE_KEY_ID"]}})

    (line,) = handler.lines
    assert line["level"] == "warning"
    assert line["logger"] == "unsentpro.test"
    assert line["message"] == "Apple credentials incomplete"
    assert line["context"] == {"missing": ["APPLE_KEY_ID"]}
    assert line["timestamp"].endswith("Z")


def test_context_is_omitted_when_absent():
    logger, handler = _logger()
    logger.info("plain")
    assert "context" not in handler.lines[0]


def test_exception_is_included():
    logger, handler = _logger()
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("Unhandled error")
    assert "RuntimeError: boom" in handler.lines[0]["exception"]


def test_pretty_output_is_indented():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
    assert "\n" in JsonFormatter(pretty=True).format(record)
    assert "\n" not in JsonFormatter().format(record)


def test_request_logger_stamps_every_line():
    logger, handler = _logger()
    log = RequestLogger(logger)

    log.info("Processing message request", extra={"context": {"customer_user_id": "u1"}})
    log.info("Request completed successfully")

    first, second = handler.lines
    assert first["context"] == {"request_id": log.request_id, "customer_user_id": "u1"}
    assert second["context"] == {"request_id": log.request_id}


def test_request_ids_differ_per_request():
    logger, _ = _logger()
    assert RequestLogger(logger).request_id != RequestLogger(logger).request_id

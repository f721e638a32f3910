"""Unit tests for logging configuration."""

import json
import logging
import sys

import pytest

from pg_readonly_mcp.lib.logging_config import (
    JSONFormatter,
    get_logger,
    log_database_query,
    log_error_with_context,
    mask_statement,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Tests for logging setup."""

    def test_console_handler_writes_to_stderr(self, restore_root_logger):
        """Test that stdout stays free for the stdio transport."""
        setup_logging(level="DEBUG", json_format=False)

        handlers = restore_root_logger.handlers
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr
        assert restore_root_logger.level == logging.DEBUG

    def test_json_format(self, restore_root_logger):
        """Test that the JSON formatter is installed on request."""
        setup_logging(level="INFO", json_format=True)
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        """Test level parsing."""
        setup_logging(level="CHATTY")
        assert restore_root_logger.level == logging.INFO

    def test_log_file(self, restore_root_logger, tmp_path):
        """Test that a file handler is added when a log file is given."""
        log_file = tmp_path / "mcp.log"
        setup_logging(level="INFO", json_format=False, log_file=str(log_file))

        logging.getLogger("test.file").info("written to file")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert "written to file" in log_file.read_text()
        for handler in restore_root_logger.handlers[1:]:
            handler.close()


class TestJSONFormatter:
    """Tests for the JSON formatter."""

    def test_format_fields(self):
        """Test the structured fields of a record."""
        record = logging.LogRecord("pg", logging.WARNING, __file__, 10, "pool %s", ("busy",), None)
        data = json.loads(JSONFormatter().format(record))

        assert data['level'] == 'WARNING'
        assert data['logger'] == 'pg'
        assert data['message'] == 'pool busy'
        assert data['service'] == 'pg-readonly-mcp'
        assert data['location'].endswith(':10')
        assert 'timestamp' in data

    def test_extra_fields_merged(self):
        """Test that adapter extra fields land in the JSON object."""
        record = logging.LogRecord("pg", logging.INFO, __file__, 10, "hello", None, None)
        record.extra_fields = {'tool': 'execute_sql'}
        data = json.loads(JSONFormatter().format(record))
        assert data['tool'] == 'execute_sql'


class TestLogHelpers:
    """Tests for statement masking and helper loggers."""

    def test_mask_statement_hides_literals(self):
        """Test that string literals never reach the log."""
        masked = mask_statement("SELECT * FROM users WHERE email = 'alice@example.com'")
        assert 'alice@example.com' not in masked
        assert masked == "SELECT * FROM users WHERE email = '***'"

    def test_mask_statement_handles_escaped_quotes(self):
        """Test doubled quotes inside a literal."""
        assert mask_statement("SELECT 'it''s secret'") == "SELECT '***'"

    def test_mask_statement_truncates_and_collapses(self):
        """Test truncation and whitespace collapsing."""
        assert mask_statement("SELECT\n    1") == "SELECT 1"
        masked = mask_statement("SELECT " + "x, " * 500, max_length=50)
        assert len(masked) == 53
        assert masked.endswith("...")

    def test_log_database_query_omits_param_values(self, caplog):
        """Test that bound parameter values are not logged."""
        logger = logging.getLogger("test.query")
        with caplog.at_level(logging.DEBUG, logger="test.query"):
            log_database_query("SELECT * FROM t WHERE a = %s", ("hunter2",), logger)

        assert "hunter2" not in caplog.text
        assert "1 bound" in caplog.text

    def test_log_error_with_context(self, caplog):
        """Test that context is attached to the error log."""
        logger = logging.getLogger("test.errors")
        with caplog.at_level(logging.ERROR, logger="test.errors"):
            try:
                raise RuntimeError("kaboom")
            except RuntimeError as e:
                log_error_with_context(e, {'tool': 'analyze_data'}, logger)

        assert "RuntimeError: kaboom" in caplog.text
        assert "analyze_data" in caplog.text

    def test_get_logger_with_extra_fields(self):
        """Test the adapter returned when extra fields are given."""
        adapter = get_logger("test.adapter", {'component': 'executor'})
        assert isinstance(adapter, logging.LoggerAdapter)
        assert adapter.extra == {'component': 'executor'}
        assert get_logger("test.plain") is logging.getLogger("test.plain")

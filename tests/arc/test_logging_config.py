"""Tests for structured logging configuration."""
import json
import logging
import os
import sys
from unittest.mock import patch

import pytest

from arc.logging_config import ContextTextFormatter, JSONFormatter, configure_logging


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Reset root logger state after each test."""
    root = logging.getLogger()
    original_level = root.level
    original_handlers = root.handlers[:]
    yield
    root.setLevel(original_level)
    root.handlers = original_handlers


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_default_level_is_info(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('LOG_LEVEL', None)
            configure_logging()
        assert logging.getLogger().level == logging.INFO

    @pytest.mark.parametrize('raw,level', [
        ('DEBUG', logging.DEBUG),
        ('warning', logging.WARNING),
        ('NONSENSE', logging.INFO),
    ])
    def test_log_level_env_var(self, raw, level):
        with patch.dict(os.environ, {'LOG_LEVEL': raw}):
            configure_logging()
        assert logging.getLogger().level == level

    def test_text_format_includes_logger_name(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'text'}):
            configure_logging()
        logging.getLogger('engine.leaderboard').info("board built")
        output = capsys.readouterr().err
        assert 'engine.leaderboard' in output
        assert 'board built' in output
        assert 'INFO' in output

    def test_json_format_carries_context(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        logging.getLogger('engine.backfill').info(
            "request linked", extra={'project_id': 'p-1', 'request_id': 'r-1'})
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['logger'] == 'engine.backfill'
        assert parsed['message'] == 'request linked'
        assert parsed['project_id'] == 'p-1'
        assert parsed['request_id'] == 'r-1'
        assert 'arena_id' not in parsed
        assert 'timestamp' in parsed

    def test_json_format_includes_exception(self, capsys):
        with patch.dict(os.environ, {'LOG_FORMAT': 'json'}):
            configure_logging()
        try:
            raise ValueError("boom")
        except ValueError:
            logging.getLogger('test.exc').error("failed", exc_info=True)
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed['level'] == 'ERROR'
        assert 'ValueError' in parsed['exception']

    def test_third_party_loggers_quieted_to_warning(self):
        configure_logging()
        for name in ['urllib3', 'requests', 'rq.worker', 'sqlalchemy.engine']:
            assert logging.getLogger(name).level == logging.WARNING

    def test_no_duplicate_handlers_on_repeated_calls(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1


class TestJSONFormatter:

    def test_format_basic_record(self):
        record = logging.LogRecord(
            name='test', level=logging.INFO, pathname='', lineno=0,
            msg='hello %s', args=('world',), exc_info=None,
        )
        record.arena_id = 'a-1'
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed['message'] == 'hello world'
        assert parsed['level'] == 'INFO'
        assert parsed['arena_id'] == 'a-1'


class TestContextTextFormatter:

    def _record(self, msg, **context):
        record = logging.LogRecord(
            name='engine.lifecycle', level=logging.INFO, pathname='', lineno=0,
            msg=msg, args=(), exc_info=None,
        )
        for key, value in context.items():
            setattr(record, key, value)
        return record

    def test_appends_context(self):
        line = ContextTextFormatter().format(
            self._record('Arena activated', project_id='p-1', arena_id='a-1'))
        assert line.endswith('Arena activated [project_id=p-1 arena_id=a-1]')
        assert 'engine.lifecycle' in line

    def test_no_context_no_suffix(self):
        line = ContextTextFormatter().format(self._record('board built'))
        assert line.endswith('board built')

    def test_context_stays_on_first_line_with_traceback(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = self._record('backfill failed', request_id='r-1')
            record.exc_info = sys.exc_info()
        first, _, rest = ContextTextFormatter().format(record).partition('\n')
        assert first.endswith('backfill failed [request_id=r-1]')
        assert 'ValueError' in rest


class TestFlaskAppLogger:

    def test_app_logger_propagates_to_root(self):
        from flask import Flask
        app = Flask('arc-test')
        app.logger.addHandler(logging.StreamHandler())

        configure_logging(app)

        assert app.logger.handlers == []
        assert app.logger.propagate is True

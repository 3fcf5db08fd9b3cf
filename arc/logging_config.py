"""
Logging setup for the leaderboard API, called once from create_app().

Loggers are named by layer ('engine.leaderboard', 'engine.backfill',
'services.social_graph', 'routes.admin', ...) and carry the board being
worked on through `extra=`:

    logger.info("Arena activated", extra={'project_id': ..., 'arena_id': ...})

Those context keys are rendered by both formats: JSON puts them at the top
level of each line; text appends them as `key=value` after the message.

Environment variables:
    LOG_LEVEL  — level name, INFO by default (unknown names fall back to INFO)
    LOG_FORMAT — "text" (default) or "json"
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = ('project_id', 'arena_id', 'request_id')

# Held at WARNING: at INFO they log every query and connection
QUIET_LOGGERS = ('urllib3', 'requests', 'rq', 'rq.worker', 'sqlalchemy.engine')

TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s — %(message)s'


def _context(record) -> dict:
    return {key: getattr(record, key) for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None}


class ContextTextFormatter(logging.Formatter):
    """Plain text line with any project / arena / request context appended."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record):
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        suffix = ' '.join(f'{key}={value}' for key, value in context.items())
        head, sep, tail = line.partition('\n')
        return f'{head} [{suffix}]{sep}{tail}'


class JSONFormatter(logging.Formatter):
    """One JSON object per line for the log aggregator."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(app=None):
    """
    Install a single stderr handler on the root logger.

    Safe to call again (worker restarts, tests): previous handlers are
    replaced. When a Flask app is given, its logger drops its own handler
    and propagates to root so request errors share the same format.
    """
    level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if os.getenv('LOG_FORMAT', 'text').lower() == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ContextTextFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.handlers.clear()
        app.logger.propagate = True

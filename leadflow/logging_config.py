"""
Structured logging configuration.

Called once from create_app() and from scripts/run_scheduler.py.

    LOG_LEVEL  — Python log level name (default: INFO)
    LOG_FORMAT — "text" (default) or "json"

The engine passes workflow/lead/enrollment ids through `extra=`; both formats
carry them so a single enrollment can be followed across runner and
scheduler log lines.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone


CONTEXT_FIELDS = ('workflow_id', 'lead_id', 'enrollment_id', 'step_type')

# Third-party loggers that are noisy at INFO
NOISY_LOGGERS = (
    'urllib3',
    'requests',
    'rq.worker',
    'sqlalchemy.engine',
    'werkzeug',
)


def record_context(record):
    """Engine context attached to a record, skipping unset fields."""
    context = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return context


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for production log aggregators."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(record_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry)


class ContextTextFormatter(logging.Formatter):
    """Human-readable lines with engine context appended as key=value pairs."""

    def __init__(self):
        super().__init__('[%(asctime)s] %(levelname)s %(name)s: %(message)s',
                         datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record):
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        suffix = ' '.join(f'{k}={v}' for k, v in context.items())
        # Keep any traceback after the context
        first, sep, rest = line.partition('\n')
        return f'{first} [{suffix}]{sep}{rest}'


def configure_logging(app=None):
    """Set up the root logger from env vars. Safe to call more than once."""
    level_name = os.getenv('LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, level_name, logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    log_format = os.getenv('LOG_FORMAT', 'text').lower()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if log_format == 'json' else ContextTextFormatter())
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        # Flask's own logger goes through the root handler
        app.logger.handlers.clear()
        app.logger.setLevel(level)

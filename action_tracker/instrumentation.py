"""
Adapters that feed the tracker's signals from real libraries.

* ``instrument_sqlite`` — forwards every statement a ``sqlite3`` connection
  runs to ``statement_executed``.
* ``CapturedLogHandler`` — forwards log records to ``log_emitted`` so that
  client libraries' own log lines (redis, celery, urllib3, smtplib, …) can
  be matched against the service rules.
"""

import logging
import sqlite3
from typing import Any, Optional

from .constants import SERVICE_NAME
from .signals import log_emitted, statement_executed


def instrument_sqlite(conn: sqlite3.Connection, sender: Optional[Any] = None) -> sqlite3.Connection:
    """Install a trace callback on *conn* and return it.

    Args:
        conn: An open ``sqlite3`` connection.
        sender: Signal sender; defaults to the connection itself.
    """
    source = conn if sender is None else sender

    def _trace(statement: str) -> None:
        statement_executed.send(source, statement=statement)

    conn.set_trace_callback(_trace)
    return conn


def connect(database, **kwargs) -> sqlite3.Connection:
    """``sqlite3.connect`` returning an instrumented connection."""
    return instrument_sqlite(sqlite3.connect(database, **kwargs))


class CapturedLogHandler(logging.Handler):
    """Logging handler that re-emits records as ``log_emitted`` events.

    Attach to the root logger::

        logging.getLogger().addHandler(CapturedLogHandler())
    """

    def __init__(self, level: int = logging.NOTSET):
        super().__init__(level)

    def emit(self, record: logging.LogRecord) -> None:
        # The tracker's own output would otherwise be fed back into itself
        if record.name == SERVICE_NAME or record.name.startswith(SERVICE_NAME + "."):
            return
        try:
            message = record.getMessage()
        except Exception:
            self.handleError(record)
            return
        log_emitted.send(record.name, logger=record.name, message=message)

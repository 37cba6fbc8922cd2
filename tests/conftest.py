"""
Test fixtures and configuration for pytest
"""

import logging
import sqlite3

import pytest
from flask import Blueprint, Flask, g

from action_tracker.config import TrackerConfig
from action_tracker.instrumentation import CapturedLogHandler, instrument_sqlite
from action_tracker.middleware import ActionTrackerMiddleware
from action_tracker.tracker import ActionTracker

PRINT_LOGGER = "tests.action_tracker.print"


@pytest.fixture
def make_tracker():
    """Factory for trackers; every tracker built here is detached afterwards."""
    built = []

    def _make(options=None, **kwargs):
        kwargs.setdefault("logger", logging.getLogger(PRINT_LOGGER))
        tracker = ActionTracker(TrackerConfig.from_dict(options), **kwargs)
        built.append(tracker)
        return tracker

    yield _make

    for tracker in built:
        while tracker.store.fetch() is not None:
            tracker.end()
        tracker.subscriptions.detach()


@pytest.fixture
def tracker(make_tracker):
    """A tracker with default options and the default lifecycle bus."""
    return make_tracker()


@pytest.fixture
def log_dir(tmp_path):
    return tmp_path / "log"


@pytest.fixture
def db_path(tmp_path):
    """SQLite database with a couple of tables and a seeded user."""
    path = tmp_path / "app.db"
    conn = sqlite3.connect(path)
    conn.executescript("""
        CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
        CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER, title TEXT);
        INSERT INTO users (id, name) VALUES (1, 'alice');
    """)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def tracked_app(db_path, log_dir, make_tracker):
    """Flask app with an instrumented database and JSON accumulation.

    Yields ``(app, tracker, log_path)``.
    """
    log_path = log_dir / "actions.json"
    tracker = make_tracker(
        {
            "print_format": "table",
            "log_format": "json",
            "write_to_file": True,
            "log_file_path": str(log_path),
        }
    )

    app = Flask(__name__)
    users_bp = Blueprint("users", __name__)

    def get_db():
        if "db" not in g:
            g.db = instrument_sqlite(sqlite3.connect(db_path))
        return g.db

    @app.teardown_appcontext
    def close_db(exc=None):
        db = g.pop("db", None)
        if db is not None:
            db.close()

    @users_bp.route("/users/<int:user_id>")
    def show(user_id):
        row = get_db().execute("SELECT name FROM users WHERE id = ?", (user_id,)).fetchone()
        return {"name": row[0]}

    @users_bp.route("/users/<int:user_id>/posts", methods=["POST"])
    def create_post(user_id):
        db = get_db()
        db.execute("SELECT id FROM users WHERE id = ?", (user_id,))
        db.execute("INSERT INTO posts (user_id, title) VALUES (?, ?)", (user_id, "hello"))
        db.commit()
        logging.getLogger("redis.client").info("Redis connection established")
        return {"ok": True}, 201

    @app.route("/health")
    def health():
        get_db().execute("SELECT * FROM users")
        return "ok"

    @app.route("/boom")
    def boom():
        get_db().execute("SELECT * FROM users")
        raise RuntimeError("boom")

    app.register_blueprint(users_bp)
    ActionTrackerMiddleware(app, tracker=tracker)

    yield app, tracker, log_path

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, CapturedLogHandler):
            root.removeHandler(handler)
    for name in tracker.config.capture_loggers:
        logging.getLogger(name).setLevel(logging.NOTSET)

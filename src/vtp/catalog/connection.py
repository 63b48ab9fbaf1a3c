"""SQLite connection management and schema for the catalog."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    status TEXT NOT NULL DEFAULT 'uploaded',
    source_location TEXT,
    source_duration REAL,
    source_width INTEGER,
    source_height INTEGER,
    source_codec TEXT,
    audio_codec TEXT,
    file_size INTEGER,
    manifest_key TEXT,
    poster_key TEXT,
    thumbnail_keys TEXT NOT NULL DEFAULT '[]',
    error_kind TEXT,
    error_message TEXT,
    error_rendition TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CHECK (status IN ('uploaded', 'processing', 'ready', 'error'))
);

CREATE INDEX IF NOT EXISTS idx_videos_status ON videos(status);

CREATE TABLE IF NOT EXISTS renditions (
    video_id TEXT NOT NULL REFERENCES videos(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    label TEXT NOT NULL,
    width INTEGER NOT NULL,
    height INTEGER NOT NULL,
    bitrate_kbps INTEGER NOT NULL,
    playlist_key TEXT NOT NULL,
    segment_keys TEXT NOT NULL DEFAULT '[]',
    PRIMARY KEY (video_id, label)
);
"""


@contextmanager
def get_connection(
    db_path: Path, timeout: float = 30.0
) -> Iterator[sqlite3.Connection]:
    """Get a database connection with proper settings.

    Args:
        db_path: Path to the database file.
        timeout: How long to wait for locks (seconds).

    Yields:
        An sqlite3 Connection with rows returned as sqlite3.Row.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), timeout=timeout)
    conn.execute("PRAGMA foreign_keys = ON")
    # WAL lets API readers proceed while a pipeline writes
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def initialize_schema(conn: sqlite3.Connection) -> None:
    """Create catalog tables if they do not exist."""
    version = conn.execute("PRAGMA user_version").fetchone()[0]
    if version >= SCHEMA_VERSION:
        return
    conn.executescript(SCHEMA_SQL)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    conn.commit()
    logger.debug("Initialized catalog schema version %d", SCHEMA_VERSION)

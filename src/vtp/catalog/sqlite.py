"""SQLite implementation of the Catalog protocol."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from vtp.catalog.connection import get_connection, initialize_schema
from vtp.domain.enums import ErrorKind, VideoStatus
from vtp.domain.models import JobError, ProbeResult, Rendition, VideoAsset

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteCatalog:
    """Catalog stored in a SQLite database.

    Each write runs in a single transaction on its own connection, so the
    catalog can be called from worker threads (asyncio.to_thread) while the
    HTTP API reads it.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        with get_connection(self._db_path) as conn:
            initialize_schema(conn)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def register(self, video_id: str, source_location: str | None = None) -> bool:
        """Add an uploaded asset to the catalog.

        Returns:
            True if the asset was created, False if it already existed.
        """
        now = _now()
        with get_connection(self._db_path) as conn, conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO videos "
                "(id, status, source_location, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (video_id, VideoStatus.UPLOADED.value, source_location, now, now),
            )
            return cursor.rowcount == 1

    def update_status(
        self, video_id: str, status: VideoStatus, error: JobError | None = None
    ) -> bool:
        if status == VideoStatus.READY:
            raise ValueError(
                "Status ready can only be set together with renditions "
                "(use update_renditions)"
            )
        if error is not None and status != VideoStatus.ERROR:
            raise ValueError(
                f"An error can only be recorded with status error, got {status.value}"
            )

        with get_connection(self._db_path) as conn, conn:
            cursor = conn.execute(
                "UPDATE videos SET status = ?, manifest_key = NULL, "
                "poster_key = NULL, thumbnail_keys = '[]', "
                "error_kind = ?, error_message = ?, error_rendition = ?, "
                "updated_at = ? WHERE id = ?",
                (
                    status.value,
                    error.kind.value if error else None,
                    error.message if error else None,
                    error.rendition if error else None,
                    _now(),
                    video_id,
                ),
            )
            if cursor.rowcount == 0:
                return False
            conn.execute("DELETE FROM renditions WHERE video_id = ?", (video_id,))
        logger.debug("Catalog status for %s set to %s", video_id, status.value)
        return True

    def update_source_metadata(self, video_id: str, probe: ProbeResult) -> bool:
        with get_connection(self._db_path) as conn, conn:
            cursor = conn.execute(
                "UPDATE videos SET "
                "source_duration = COALESCE(source_duration, ?), "
                "source_width = COALESCE(source_width, ?), "
                "source_height = COALESCE(source_height, ?), "
                "source_codec = COALESCE(source_codec, ?), "
                "audio_codec = COALESCE(audio_codec, ?), "
                "file_size = COALESCE(file_size, ?), "
                "updated_at = ? WHERE id = ?",
                (
                    probe.duration_seconds,
                    probe.width,
                    probe.height,
                    probe.codec,
                    probe.audio_codec,
                    probe.file_size,
                    _now(),
                    video_id,
                ),
            )
            return cursor.rowcount == 1

    def update_renditions(
        self,
        video_id: str,
        renditions: Sequence[Rendition],
        manifest_key: str,
        poster_key: str | None = None,
        thumbnail_keys: Sequence[str] = (),
    ) -> bool:
        if not renditions:
            raise ValueError("Cannot publish an asset without renditions")
        if not manifest_key:
            raise ValueError("Cannot publish an asset without a manifest")

        with get_connection(self._db_path) as conn, conn:
            cursor = conn.execute(
                "UPDATE videos SET status = ?, manifest_key = ?, poster_key = ?, "
                "thumbnail_keys = ?, error_kind = NULL, error_message = NULL, "
                "error_rendition = NULL, updated_at = ? WHERE id = ?",
                (
                    VideoStatus.READY.value,
                    manifest_key,
                    poster_key,
                    json.dumps(list(thumbnail_keys)),
                    _now(),
                    video_id,
                ),
            )
            if cursor.rowcount == 0:
                return False
            conn.execute("DELETE FROM renditions WHERE video_id = ?", (video_id,))
            conn.executemany(
                "INSERT INTO renditions (video_id, position, label, width, height, "
                "bitrate_kbps, playlist_key, segment_keys) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        video_id,
                        position,
                        r.label,
                        r.width,
                        r.height,
                        r.bitrate_kbps,
                        r.playlist_key,
                        json.dumps(list(r.segment_keys)),
                    )
                    for position, r in enumerate(renditions)
                ],
            )
        logger.info("Published %d renditions for %s", len(renditions), video_id)
        return True

    def get_video(self, video_id: str) -> VideoAsset | None:
        """Get an asset by id, or None if it is not in the catalog."""
        with get_connection(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM videos WHERE id = ?", (video_id,)
            ).fetchone()
            if row is None:
                return None
            return self._to_asset(conn, row)

    def list_by_status(self, status: VideoStatus) -> list[VideoAsset]:
        """List assets with the given status, oldest first."""
        with get_connection(self._db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM videos WHERE status = ? ORDER BY created_at, id",
                (status.value,),
            ).fetchall()
            return [self._to_asset(conn, row) for row in rows]

    def fail_interrupted(self) -> int:
        """Mark assets left in processing by a previous process as failed.

        Job state is not durable, so nothing will ever finish these jobs.

        Returns:
            Number of assets marked as error.
        """
        with get_connection(self._db_path) as conn, conn:
            cursor = conn.execute(
                "UPDATE videos SET status = ?, error_kind = ?, error_message = ?, "
                "error_rendition = NULL, updated_at = ? WHERE status = ?",
                (
                    VideoStatus.ERROR.value,
                    ErrorKind.INTERRUPTED.value,
                    "Processing was interrupted by a restart",
                    _now(),
                    VideoStatus.PROCESSING.value,
                ),
            )
            count = cursor.rowcount
        if count:
            logger.warning("Marked %d interrupted assets as error", count)
        return count

    def _to_asset(self, conn: sqlite3.Connection, row: sqlite3.Row) -> VideoAsset:
        rendition_rows = conn.execute(
            "SELECT * FROM renditions WHERE video_id = ? ORDER BY position",
            (row["id"],),
        ).fetchall()
        renditions = tuple(
            Rendition(
                label=r["label"],
                width=r["width"],
                height=r["height"],
                bitrate_kbps=r["bitrate_kbps"],
                playlist_key=r["playlist_key"],
                segment_keys=tuple(json.loads(r["segment_keys"])),
            )
            for r in rendition_rows
        )
        error = None
        if row["error_kind"]:
            error = JobError(
                kind=ErrorKind(row["error_kind"]),
                message=row["error_message"] or "",
                rendition=row["error_rendition"],
            )
        return VideoAsset(
            id=row["id"],
            status=VideoStatus(row["status"]),
            source_duration=row["source_duration"],
            source_width=row["source_width"],
            source_height=row["source_height"],
            renditions=renditions,
            manifest_key=row["manifest_key"],
            poster_key=row["poster_key"],
            thumbnail_keys=tuple(json.loads(row["thumbnail_keys"])),
            error=error,
        )

"""Catalog interface: the pipeline's view of video asset records."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from vtp.domain.enums import VideoStatus
from vtp.domain.models import JobError, ProbeResult, Rendition


class Catalog(Protocol):
    """Protocol for catalog implementations.

    The catalog status is the single source of truth for playability. Only
    update_renditions() may make an asset ready, and it records the
    renditions, manifest and poster together with the status change.
    Methods return False when no asset with video_id exists.
    """

    def update_status(
        self, video_id: str, status: VideoStatus, error: JobError | None = None
    ) -> bool:
        """Set a non-ready status, clearing any renditions and manifest.

        Raises:
            ValueError: If status is READY.
        """
        ...

    def update_source_metadata(self, video_id: str, probe: ProbeResult) -> bool:
        """Record probed source metadata. Fields already set are kept."""
        ...

    def update_renditions(
        self,
        video_id: str,
        renditions: Sequence[Rendition],
        manifest_key: str,
        poster_key: str | None = None,
        thumbnail_keys: Sequence[str] = (),
    ) -> bool:
        """Atomically publish renditions and mark the asset ready.

        Raises:
            ValueError: If renditions is empty or manifest_key is missing.
        """
        ...

"""Pure planning and manifest logic for the transcode pipeline."""

from vtp.pipeline.ladder import DEFAULT_LADDER, plan_renditions
from vtp.pipeline.manifest import (
    VariantStream,
    build_master_playlist,
    parse_master_playlist,
    parse_media_playlist,
)

__all__ = [
    "DEFAULT_LADDER",
    "VariantStream",
    "build_master_playlist",
    "parse_master_playlist",
    "parse_media_playlist",
    "plan_renditions",
]

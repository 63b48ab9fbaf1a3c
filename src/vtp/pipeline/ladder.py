"""Quality ladder planning.

Picks which renditions to encode for a source. The ladder never upscales:
a rendition is included only if it is no taller than the source, except
that the smallest rendition is always produced so every video is playable.
"""

from __future__ import annotations

from collections.abc import Sequence

from vtp.domain.models import RenditionSpec

# Ascending by height; this order is also the encode order.
DEFAULT_LADDER: tuple[RenditionSpec, ...] = (
    RenditionSpec("360p", 640, 360, 500, 0.30),
    RenditionSpec("480p", 854, 480, 1000, 0.40),
    RenditionSpec("720p", 1280, 720, 2500, 0.60),
    RenditionSpec("1080p", 1920, 1080, 5000, 1.00),
)


def plan_renditions(
    source_height: int,
    ladder: Sequence[RenditionSpec] = DEFAULT_LADDER,
) -> list[RenditionSpec]:
    """Select the renditions to produce for a source.

    Args:
        source_height: Height of the source video in pixels.
        ladder: Candidate renditions. Sorted by height before selection.

    Returns:
        Non-empty list of renditions, ascending by height.

    Raises:
        ValueError: If source_height is not positive or the ladder is empty.
    """
    if source_height <= 0:
        raise ValueError(f"source_height must be positive, got {source_height}")
    if not ladder:
        raise ValueError("ladder must contain at least one rendition")

    ordered = sorted(ladder, key=lambda spec: spec.height)
    selected = [spec for spec in ordered if spec.height <= source_height]
    if not selected:
        # Sources below the smallest rung still get one rendition
        selected = [ordered[0]]
    return selected

"""HLS playlist assembly and parsing.

build_master_playlist() writes the master manifest that lists every
rendition's media playlist. The parse functions read playlists back; the
pipeline uses parse_media_playlist() to find the segments an encode
produced.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from vtp.domain.exceptions import AssemblyError
from vtp.domain.models import Rendition

_RESOLUTION_RE = re.compile(r"^\d+x\d+$")
_ATTRIBUTE_RE = re.compile(r'([A-Z0-9-]+)=("[^"]*"|[^,]*)')


@dataclass(frozen=True)
class VariantStream:
    """One #EXT-X-STREAM-INF entry of a master playlist."""

    bandwidth: int
    resolution: str
    uri: str

    @property
    def width(self) -> int:
        return int(self.resolution.split("x")[0])

    @property
    def height(self) -> int:
        return int(self.resolution.split("x")[1])


def playlist_name(label: str) -> str:
    """File name of a rendition's media playlist, relative to the master."""
    return f"{label}.m3u8"


def build_master_playlist(renditions: Sequence[Rendition]) -> str:
    """Build the HLS master playlist for a set of renditions.

    Each entry declares BANDWIDTH in bits per second and RESOLUTION as
    <width>x<height>, followed by the relative URI of the media playlist.

    Args:
        renditions: Produced renditions, in the order they should be listed.

    Returns:
        The master playlist text.

    Raises:
        AssemblyError: If renditions is empty or any rendition has
            non-positive dimensions or bitrate.
    """
    if not renditions:
        raise AssemblyError("Cannot build a master playlist without renditions")

    lines = ["#EXTM3U", "#EXT-X-VERSION:3"]
    for rendition in renditions:
        if rendition.width <= 0 or rendition.height <= 0:
            raise AssemblyError(
                f"Rendition {rendition.label} has invalid dimensions "
                f"{rendition.width}x{rendition.height}"
            )
        if rendition.bitrate_kbps <= 0:
            raise AssemblyError(
                f"Rendition {rendition.label} has invalid bitrate "
                f"{rendition.bitrate_kbps}"
            )
        lines.append(
            f"#EXT-X-STREAM-INF:BANDWIDTH={rendition.bitrate_kbps * 1000},"
            f"RESOLUTION={rendition.width}x{rendition.height}"
        )
        lines.append(playlist_name(rendition.label))
    return "\n".join(lines) + "\n"


def _parse_attributes(text: str) -> dict[str, str]:
    return {key: value.strip('"') for key, value in _ATTRIBUTE_RE.findall(text)}


def parse_master_playlist(text: str) -> list[VariantStream]:
    """Parse the variant streams of a master playlist.

    Raises:
        ValueError: If the text is not an HLS playlist or an entry is
            malformed.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines or lines[0] != "#EXTM3U":
        raise ValueError("Not an HLS playlist: missing #EXTM3U header")

    variants: list[VariantStream] = []
    pending: dict[str, str] | None = None
    for line in lines[1:]:
        if line.startswith("#EXT-X-STREAM-INF:"):
            pending = _parse_attributes(line.partition(":")[2])
            continue
        if line.startswith("#"):
            continue
        if pending is None:
            continue
        resolution = pending.get("RESOLUTION", "")
        if not _RESOLUTION_RE.match(resolution):
            raise ValueError(f"Invalid RESOLUTION {resolution!r} for {line}")
        try:
            bandwidth = int(pending["BANDWIDTH"])
        except (KeyError, ValueError) as e:
            raise ValueError(f"Missing or invalid BANDWIDTH for {line}") from e
        variants.append(VariantStream(bandwidth, resolution, line))
        pending = None
    return variants


def parse_media_playlist(text: str) -> list[str]:
    """List the segment URIs of a media playlist, in playlist order.

    Raises:
        ValueError: If the text is not an HLS playlist.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines or lines[0] != "#EXTM3U":
        raise ValueError("Not an HLS playlist: missing #EXTM3U header")
    return [line for line in lines[1:] if not line.startswith("#")]

"""Source metadata probing."""

from vtp.introspector.ffprobe import FFprobeProber
from vtp.introspector.interface import MediaProber
from vtp.introspector.parsers import parse_probe_output

__all__ = [
    "FFprobeProber",
    "MediaProber",
    "parse_probe_output",
]

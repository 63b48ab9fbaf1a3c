"""Storage interface for sources and pipeline outputs."""

from typing import BinaryIO, Protocol


class Storage(Protocol):
    """Protocol for object storage backends.

    Keys are "/"-separated relative paths such as
    "processed/<video_id>/hls/720p.m3u8". Every failure is raised as
    StorageError.
    """

    def read(self, location: str) -> BinaryIO:
        """Open the object at location for reading. Caller closes it."""
        ...

    def write(self, key: str, stream: BinaryIO) -> None:
        """Store the contents of stream under key, replacing any object."""
        ...

    def exists(self, key: str) -> bool:
        """True if an object is stored under key."""
        ...

    def delete(self, prefix: str) -> int:
        """Delete every object under prefix.

        Returns:
            Number of objects deleted (0 if none existed).
        """
        ...

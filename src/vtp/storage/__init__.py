"""Object storage for sources and pipeline outputs."""

from vtp.storage.interface import Storage
from vtp.storage.local import LocalStorage

__all__ = ["LocalStorage", "Storage"]

"""Video asset catalog."""

from vtp.catalog.interface import Catalog
from vtp.catalog.sqlite import SqliteCatalog

__all__ = ["Catalog", "SqliteCatalog"]

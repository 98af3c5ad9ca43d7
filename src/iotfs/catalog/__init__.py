"""Remote resource catalog clients."""

from .base import CatalogClient, CatalogError, ErrorKind

__all__ = ["CatalogClient", "CatalogError", "ErrorKind"]

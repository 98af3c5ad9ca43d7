"""
Filesystem error taxonomy.

Every failure the tree reports is an ``FSError``: an ``OSError`` carrying
the POSIX errno the kernel should see. fusepy turns a raised ``OSError``
into ``-errno`` on its own, so tree and dispatcher code simply raise.

Remote failures come out of the catalog client as ``CatalogError`` and
out of the message transport as ``TransportError``. They are translated
exactly once, where the node calls its collaborator, via
:func:`remote_call`.
"""

from __future__ import annotations

import errno
import logging
import os
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Type

from .catalog.base import CatalogError, ErrorKind
from .transport.base import TransportError

logger = logging.getLogger("iotfs.errors")


class FSError(OSError):
    """Base class for errors surfaced through the filesystem."""

    errno_value: int = errno.EIO

    def __init__(self, message: str = "", path: Optional[str] = None) -> None:
        super().__init__(self.errno_value, message or os.strerror(self.errno_value), path)

    @property
    def code(self) -> int:
        """Signed result code for integer-returning driver bindings."""
        return -self.errno_value


class NotFound(FSError):
    errno_value = errno.ENOENT


class NotADirectory(FSError):
    errno_value = errno.ENOTDIR


class IsADirectory(FSError):
    errno_value = errno.EISDIR


class DirectoryNotEmpty(FSError):
    errno_value = errno.ENOTEMPTY


class AlreadyExists(FSError):
    errno_value = errno.EEXIST


class NoSpace(FSError):
    errno_value = errno.ENOSPC


class Unauthorized(FSError):
    errno_value = errno.EACCES


class PermissionDenied(Unauthorized):
    """Local refusal (root removal, read-only document)."""


class InvalidArgument(FSError):
    errno_value = errno.EINVAL


class Busy(FSError):
    errno_value = errno.EBUSY


class NoSuchDevice(FSError):
    """Wrong kind of link target, or a remote resource that vanished."""

    errno_value = errno.ENODEV


class NotSupported(FSError):
    errno_value = errno.ENOSYS


class GenericIO(FSError):
    errno_value = errno.EIO


_KIND_TO_ERROR: Dict[ErrorKind, Type[FSError]] = {
    ErrorKind.NOT_FOUND: NoSuchDevice,
    ErrorKind.UNAUTHORIZED: Unauthorized,
    ErrorKind.INVALID_REQUEST: InvalidArgument,
    ErrorKind.CONFLICT: Busy,
    ErrorKind.ALREADY_EXISTS: AlreadyExists,
    ErrorKind.LIMIT_EXCEEDED: NoSpace,
}


def translate(exc: Exception, path: Optional[str] = None) -> FSError:
    """Map a collaborator failure onto the filesystem taxonomy.

    Args:
        exc: A ``CatalogError``, ``TransportError`` or an ``FSError``
            that already went through translation.
        path: Path to attach to the resulting error.

    Returns:
        FSError: The error to raise. Unclassified failures are GenericIO.
    """
    if isinstance(exc, FSError):
        return exc
    if isinstance(exc, CatalogError):
        return _KIND_TO_ERROR.get(exc.kind, GenericIO)(str(exc), path)
    return GenericIO(str(exc), path)


@contextmanager
def remote_call(action: str, path: Optional[str] = None) -> Iterator[None]:
    """Run a catalog or transport call, translating its failures.

    Args:
        action: Short description used in the warning log line.
        path: Filesystem path the call was made for.

    Raises:
        FSError: The translated remote failure.
    """
    try:
        yield
    except (CatalogError, TransportError) as exc:
        logger.warning("%s failed for %s: %s", action, path or "-", exc)
        raise translate(exc, path) from exc

"""
Reference-counted ownership of a shared data source.

Several collections may use one DataSource. Each holds its own
ConnectionHandle; handles retained from one another share a lineage that
counts live references. When the last reference of an owning lineage is
released the data source is closed, exactly once.
"""

import threading
from typing import Protocol

from ..core import UseAfterDisposeError, get_logger

logger = get_logger(__name__)


class Closeable(Protocol):
    def close(self) -> None:
        ...


class _Lineage:
    """Shared state of all handles retained from one acquire() call."""

    def __init__(self, resource: Closeable, owns: bool):
        self.resource = resource
        self.owns = owns
        self.count = 1
        self.finished = False
        self.lock = threading.Lock()


class ConnectionHandle:
    """
    One logical reference to a physical data source.

    Use ``acquire`` to start a lineage, ``retain`` to add a reference and
    ``release`` to drop one. Handles are safe to retain and release from
    multiple threads.
    """

    def __init__(self, lineage: _Lineage):
        self._lineage = lineage
        self._released = False

    @classmethod
    def acquire(cls, resource: Closeable, owns: bool) -> "ConnectionHandle":
        """
        Wrap a resource in a new handle lineage.

        Args:
            resource: Physical data source with a ``close()`` method.
            owns: Whether releasing the last reference closes the resource.

        Returns:
            First handle of the lineage.
        """
        if resource is None:
            raise ValueError("resource must not be None")
        return cls(_Lineage(resource, owns))

    @property
    def resource(self) -> Closeable:
        """The wrapped data source."""
        if self._released:
            raise UseAfterDisposeError("Connection handle has been released")
        return self._lineage.resource

    @property
    def owns_resource(self) -> bool:
        return self._lineage.owns

    @property
    def ref_count(self) -> int:
        """Live references in this lineage."""
        with self._lineage.lock:
            return self._lineage.count

    @property
    def released(self) -> bool:
        return self._released

    def retain(self) -> "ConnectionHandle":
        """
        Add a reference to the same resource.

        Returns:
            New handle sharing this lineage.

        Raises:
            UseAfterDisposeError: If this handle was already released.
        """
        lineage = self._lineage
        with lineage.lock:
            if self._released or lineage.finished:
                raise UseAfterDisposeError("Cannot retain a released connection handle")
            lineage.count += 1
        return ConnectionHandle(lineage)

    def release(self) -> None:
        """
        Drop this reference.

        Closes the resource when the last reference of an owning lineage is
        dropped. Releasing twice is a no-op. Close failures are logged.
        """
        lineage = self._lineage
        with lineage.lock:
            if self._released:
                return
            self._released = True
            lineage.count -= 1
            if lineage.count > 0:
                return
            lineage.finished = True

        if not lineage.owns:
            logger.debug(f"Last reference to {lineage.resource!r} released; resource not owned, left open")
            return

        try:
            lineage.resource.close()
            logger.debug(f"Closed {lineage.resource!r}")
        except Exception as e:
            logger.error(f"Failed to close {lineage.resource!r}: {e}")

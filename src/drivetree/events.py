"""EventBus and node lifecycle events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Lifecycle events emitted after a drive mutation commits."""

    FOLDER_CREATED = "folder_created"
    FILE_UPLOADED = "file_uploaded"
    NODE_RENAMED = "node_renamed"
    NODE_MOVED = "node_moved"
    NODE_TRASHED = "node_trashed"
    NODE_RESTORED = "node_restored"
    NODE_PURGED = "node_purged"
    NODE_SHARED = "node_shared"


@dataclass(frozen=True, slots=True)
class NodeEvent:
    """Immutable record of a committed drive mutation.

    Attributes:
        event_type: The kind of mutation that occurred.
        node_id: Id of the affected node (the cascade root for cascades).
        owner_id: Owner of the affected node.
        path: Path of the node after the mutation.
        old_path: Previous path (renames and moves only).
        size_bytes: Bytes that entered or left the live set (uploads, trash,
            restore) or were freed (purges), 0 otherwise.
        principal_id: Who performed the mutation.
    """

    event_type: EventType
    node_id: str
    owner_id: str
    path: str
    old_path: str | None = None
    size_bytes: int = 0
    principal_id: str | None = None


class EventBus:
    """Dispatches node events to registered handlers.

    Handlers are called sequentially in registration order.
    Exceptions are logged but never propagated; the mutation that raised
    the event has already committed.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(self, event_type: EventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def unregister(self, event_type: EventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    async def emit(self, event: NodeEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        for handler in self._handlers[event.event_type]:
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s",
                    handler,
                    event.event_type.value,
                    event.path,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()

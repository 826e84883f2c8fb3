"""Event publisher - routes domain events to their handlers."""

import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, Dict, List, Optional, Protocol, Type

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


Handler = Callable[[Any], Any]
# Same shape as BackgroundTasks.add_task: dispatch(func, *args)
Dispatcher = Callable[..., Any]


def _run_inline(func: Callable[..., Any], *args: Any) -> Any:
    return func(*args)


class EventPublisher:
    """
    Publishes domain events to subscribed handlers.

    How a handler runs is decided by ``dispatch``: inline by default, or
    deferred (e.g. FastAPI background tasks) in the HTTP layer. Handler
    failures are logged and never propagate to the publisher.
    """

    def __init__(self, dispatch: Optional[Dispatcher] = None):
        self._dispatch = dispatch or _run_inline
        self._handlers: DefaultDict[Type[Any], List[Handler]] = defaultdict(list)
        self.published: List[Event] = []

    def subscribe(self, event_type: Type[Any], handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: Event) -> None:
        event_type = type(event).__name__
        self.published.append(event)
        handlers = self._handlers.get(type(event), [])
        logger.debug(f"Publishing {event_type} to {len(handlers)} handler(s)")
        for handler in handlers:
            self._dispatch(self._run_handler, handler, event)

    @staticmethod
    def _run_handler(handler: Handler, event: Event) -> None:
        try:
            handler(event)
        except Exception as exc:
            logger.error(
                f"Event handler {getattr(handler, '__qualname__', handler)} failed for "
                f"{type(event).__name__}: {exc}",
                extra={"event": type(event).__name__, "error_type": type(exc).__name__},
                exc_info=True,
            )

"""Event emitter and subscriber system.

Async pub/sub for SystemEvents. Lifecycle operations emit events that are
consumed by the audit logger (and any other registered subscriber) on a
background worker, so emitting never waits on a slow or failing consumer.

Usage:
    from skillswap.events import emit

    await emit(SystemEvent(
        event_type=EventType.SESSION_CONFIRMED,
        actor_id=str(tutor_id),
        target_type="Session",
        target_id=session.id,
    ))

    # At startup:
    from skillswap.events import subscribe

    subscribe(audit_on_event)                        # every event
    subscribe(on_review, categories=["review"])      # only review.* events
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable
from typing import Any

from skillswap.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]

# ── Internal state ───────────────────────────────────────────────────

_subscribers: list[EventHandler] = []
_type_subscribers: dict[EventType, list[EventHandler]] = {}
_category_subscribers: dict[str, list[EventHandler]] = {}
_queue: asyncio.Queue[SystemEvent] | None = None
_worker_task: asyncio.Task[None] | None = None


# ── Public API ───────────────────────────────────────────────────────


def subscribe(
    handler: EventHandler,
    event_types: Iterable[EventType] | None = None,
    categories: Iterable[str] | None = None,
) -> None:
    """Register an event handler.

    With neither ``event_types`` nor ``categories`` the handler receives
    every event.
    """
    if event_types is None and categories is None:
        _subscribers.append(handler)
        logger.info("Registered global event subscriber: %s", handler.__name__)
        return

    for et in event_types or ():
        _type_subscribers.setdefault(et, []).append(handler)
    for category in categories or ():
        _category_subscribers.setdefault(category, []).append(handler)
    logger.info("Registered event subscriber %s", handler.__name__)


def unsubscribe(handler: EventHandler) -> None:
    """Remove a previously registered handler everywhere it was registered."""
    if handler in _subscribers:
        _subscribers.remove(handler)
    for registry in (_type_subscribers, _category_subscribers):
        for handlers in registry.values():
            if handler in handlers:
                handlers.remove(handler)


async def emit(event: SystemEvent) -> None:
    """Publish a SystemEvent to all matching subscribers via the queue."""
    global _queue
    if _queue is None:
        _queue = asyncio.Queue()
        _ensure_worker()

    await _queue.put(event)
    logger.debug("Event emitted: %s (target=%s)", event.event_type.value, event.target_id)


async def emit_nowait(event: SystemEvent) -> None:
    """Dispatch directly without queueing; returns once every handler has run.

    For callers with no running event worker, such as a one-off script.
    """
    await _dispatch(event)


def handlers_for(event: SystemEvent) -> list[EventHandler]:
    """Resolve every handler that should receive ``event``, without duplicates."""
    handlers: list[EventHandler] = list(_subscribers)
    handlers.extend(_type_subscribers.get(event.event_type, ()))
    handlers.extend(_category_subscribers.get(event.event_type.category, ()))
    unique: list[EventHandler] = []
    for handler in handlers:
        if handler not in unique:
            unique.append(handler)
    return unique


# ── Background worker ────────────────────────────────────────────────


def _ensure_worker() -> None:
    """Start the background event worker if not already running."""
    global _worker_task
    if _worker_task is None or _worker_task.done():
        _worker_task = asyncio.create_task(_event_worker())
        logger.info("Event worker started")


async def _event_worker() -> None:
    """Drain the queue and dispatch to subscribers until cancelled."""
    if _queue is None:
        return

    while True:
        try:
            event = await _queue.get()
        except asyncio.CancelledError:
            logger.info("Event worker shutting down")
            break
        try:
            await _dispatch(event)
        except Exception:
            logger.exception("Error in event worker")
        finally:
            _queue.task_done()


async def _dispatch(event: SystemEvent) -> None:
    """Dispatch a single event to all matching subscribers concurrently."""
    handlers = handlers_for(event)
    if not handlers:
        return

    results = await asyncio.gather(
        *[_safe_call(handler, event) for handler in handlers],
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, Exception):
            logger.error("Event handler failed for %s: %s", event.event_type.value, result)


async def _safe_call(handler: EventHandler, event: SystemEvent) -> None:
    """Call a handler with error isolation."""
    try:
        await handler(event)
    except Exception:
        logger.exception("Handler %s failed for event %s", handler.__name__, event.event_type.value)
        raise


# ── Lifecycle ────────────────────────────────────────────────────────


async def start_event_system() -> None:
    """Initialize the event system. Call during FastAPI lifespan startup."""
    global _queue
    _queue = asyncio.Queue()
    _ensure_worker()
    logger.info(
        "Event system started with %d global + %d typed + %d category subscribers",
        len(_subscribers),
        sum(len(v) for v in _type_subscribers.values()),
        sum(len(v) for v in _category_subscribers.values()),
    )


async def stop_event_system() -> None:
    """Drain pending events and stop the worker. Call during lifespan shutdown."""
    global _worker_task, _queue

    if _queue is not None:
        await _queue.join()

    if _worker_task is not None and not _worker_task.done():
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            pass

    _worker_task = None
    _queue = None
    logger.info("Event system stopped")

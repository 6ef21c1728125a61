"""Lifecycle event subscription of the queue engine."""

from __future__ import annotations

import asyncio
from collections import defaultdict
import logging
from typing import Any, Callable, Dict, List, Optional

import simplejson as json

from .interface import EngineQueueEvents
from .queue import QueueBase
from .types import ClientType, QueueEventsOptions

LOG = logging.getLogger(__name__)


class QueueEvents(QueueBase, EngineQueueEvents):
    """
    Delivers the events of one queue ("waiting", "delayed", "active",
    "progress", "completed", "failed", "removed", "paused", "resumed").

    Events are published on the queue's Redis channel; they reach the
    callbacks once wait_until_ready() has subscribed. Callbacks get a
    dict of the event's arguments, e.g. {"job_id": "1", "returnvalue": 42}
    for "completed".
    """

    def __init__(self, name: str, opts: Optional[QueueEventsOptions] = None):
        super().__init__(name,
                         opts if opts is not None else QueueEventsOptions(),
                         ClientType.NORMAL)
        self._callbacks: Dict[str, List[Callable]] = defaultdict(list)
        self._pubsub = None
        self._reader: Optional[asyncio.Future] = None

    def _dispatch(self, event: str, args: Dict[str, Any]) -> None:
        for callback in list(self._callbacks.get(event, ())):
            try:
                callback(args)
            except Exception:  # pylint: disable=broad-except
                LOG.exception("%s callback of %s failed", event, self.name)

    async def _read(self) -> None:
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            args = json.loads(message["data"])
            self._dispatch(args.pop("event", None), args)

    async def wait_until_ready(self) -> QueueEvents:
        if self._pubsub is None:
            pubsub = self.connection.client.pubsub(
                ignore_subscribe_messages=True)
            await pubsub.subscribe(self.store.events_key)
            # read the subscription confirmation
            await pubsub.get_message(timeout=1.0)
            self._pubsub = pubsub
            self._reader = asyncio.ensure_future(self._read())
            LOG.debug("subscribed to events of %s", self.name)
        return self

    def on(self, event: str, callback: Callable) -> None:
        self._callbacks[event].append(callback)

    def off(self, event: str, callback: Callable) -> None:
        callbacks = self._callbacks.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    async def close(self) -> None:
        if self.closing:
            return
        self._callbacks.clear()
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        if self._pubsub is not None:
            await self._pubsub.aclose()
        await super().close()
        LOG.debug("events of %s closed", self.name)

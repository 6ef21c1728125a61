"""
Worker of the queue engine.

The worker polls its queue for waiting jobs and runs up to
`concurrency` of them at a time through the processor. A processor is
a callable taking the engine job, returning the result or an awaitable
of it; a string is the path of a Python file whose `process(job)`
function is used. Plain functions run in a thread so that they neither
block the event loop nor escape the job timeout.
"""

from __future__ import annotations

import asyncio
from collections import deque
import hashlib
import importlib.util
import inspect
import logging
import os
from typing import Any, Callable, Optional, Set, Union

from .errors import EngineError, JobNotFoundError
from .interface import EngineWorker
from .job import Job
from .queue import Queue, QueueBase
from .types import (AdvancedOpts, ClientType, QueueOptions, WorkerOptions,
                    now_millis)

LOG = logging.getLogger(__name__)

# Seconds between two polls of an idle queue
POLL_INTERVAL = 0.01


class JobTimeoutError(EngineError):
    pass


def is_async_callable(func) -> bool:
    """True for coroutine functions and objects with an async __call__."""
    return (inspect.iscoroutinefunction(func)
            or inspect.iscoroutinefunction(getattr(func, "__call__", None)))


def load_processor(path: str) -> Callable:
    """Load the `process` function of a processor file."""
    path = os.path.abspath(os.path.expanduser(path))
    digest = hashlib.md5(path.encode()).hexdigest()
    spec = importlib.util.spec_from_file_location(
        "queuecompat_processor_{}".format(digest), path)
    if spec is None or spec.loader is None:
        raise EngineError("Cannot load processor file {}".format(path))
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    processor = getattr(module, "process", None)
    if not callable(processor):
        raise EngineError(
            "Processor file {} has no process(job) function".format(path))
    return processor


class Worker(QueueBase, EngineWorker):
    # pylint: disable=too-many-instance-attributes

    def __init__(self, name: str, processor: Union[str, Callable],
                 opts: Optional[WorkerOptions] = None):
        super().__init__(name, opts if opts is not None else WorkerOptions(),
                         ClientType.BLOCKING)
        if isinstance(processor, str):
            processor = load_processor(processor)
        self.processor = processor
        self.concurrency = max(self.opts.concurrency or 1, 1)
        self.settings = self.opts.settings or AdvancedOpts()
        self.limiter = self.opts.limiter
        self.queue = Queue(name, QueueOptions(connection=self.connection,
                                              prefix=self.prefix))
        self._paused = False
        self._running: Set[asyncio.Future] = set()
        self._started: deque = deque()
        self._ready: Optional[asyncio.Future] = None
        self._loop: Optional[asyncio.Future] = None

    def wait_until_ready(self) -> asyncio.Future:
        """Start the run loop; must be called with an event loop running."""
        if self._ready is None:
            self._ready = asyncio.get_running_loop().create_task(
                self._start())
        return self._ready

    async def _start(self) -> Worker:
        await self.connection.client_setname(self.client_name())
        await self.connection.wait_until_ready()
        self._loop = asyncio.ensure_future(self.run())
        LOG.debug("worker %s started, concurrency %d",
                  self.name, self.concurrency)
        return self

    def _rate_limited(self) -> bool:
        if self.limiter is None or not self.limiter.max:
            return False
        horizon = now_millis() - (self.limiter.duration or 0)
        while self._started and self._started[0] <= horizon:
            self._started.popleft()
        return len(self._started) >= self.limiter.max

    async def run(self) -> None:
        while not self.closing:
            if (self._paused or len(self._running) >= self.concurrency
                    or self._rate_limited()):
                await asyncio.sleep(POLL_INTERVAL)
                continue
            job = await self.queue.move_to_active()
            if job is None:
                await asyncio.sleep(POLL_INTERVAL)
                continue
            self._started.append(now_millis())
            task = asyncio.ensure_future(self.process_job(job))
            self._running.add(task)
            task.add_done_callback(self._running.discard)

    async def _run_processor(self, job: Job) -> Any:
        if is_async_callable(self.processor):
            result = await self.processor(job)
        else:
            result = await asyncio.to_thread(self.processor, job)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _call_processor(self, job: Job) -> Any:
        if not job.opts.timeout:
            return await self._run_processor(job)
        try:
            return await asyncio.wait_for(self._run_processor(job),
                                          job.opts.timeout / 1000.0)
        except asyncio.TimeoutError:
            raise JobTimeoutError("job {} timed out after {} ms".format(
                job.id, job.opts.timeout)) from None

    async def process_job(self, job: Job) -> None:
        try:
            result = await self._call_processor(job)
        except Exception as err:  # pylint: disable=broad-except
            LOG.debug("job %s failed: %r", job.id, err)
            try:
                await job.move_to_failed(err, self.settings.backoff_strategies)
            except JobNotFoundError as missing:
                LOG.warning("%s", missing)
            except ValueError:
                LOG.exception("cannot retry job %s", job.id)
            return
        try:
            await job.move_to_completed(result, fetch_next=False)
        except JobNotFoundError as missing:
            LOG.warning("%s", missing)

    async def pause(self, do_not_wait_active: bool = False) -> None:
        self._paused = True
        if not do_not_wait_active and self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    def resume(self) -> None:
        self._paused = False

    def is_paused(self) -> bool:
        return self._paused

    def is_running(self) -> bool:
        return self._loop is not None and not self._loop.done()

    async def close(self) -> None:
        if self.closing:
            return
        self.closing = True
        if self._ready is not None:
            await self._ready
        if self._loop is not None:
            await self._loop
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
        if self._owns_connection:
            await self.connection.close()
        LOG.debug("worker %s closed", self.name)

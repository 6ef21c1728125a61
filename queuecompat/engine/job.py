"""
Job handle of the queue engine.

A Job is an in-memory copy of one stored job record. Operations that
change the job (progress, data, state moves) write through to the
job record stored in the queue's Redis namespace.
"""

from __future__ import annotations

import asyncio
import logging
import traceback
from typing import Any, Callable, Dict, Optional, Tuple

import simplejson as json

from .errors import JobFailedError, JobNotFoundError
from .types import BackoffOpts, JobsOpts, now_millis

LOG = logging.getLogger(__name__)


def _loads(raw: Optional[str], default: Any) -> Any:
    if raw is None or raw == "":
        return default
    return json.loads(raw)


def _int_or_none(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    return int(raw)


def failure_reason(err: Any) -> str:
    """Message recorded for an error passed to move_to_failed."""
    if isinstance(err, BaseException):
        return str(err)
    if isinstance(err, dict):
        return str(err.get("message", ""))
    return str(err)


def backoff_delay(backoff, attempts_made: int, err: Any,
                  strategies: Optional[Dict[str, Callable]] = None) -> int:
    """Milliseconds to wait before the next attempt."""
    if backoff is None:
        return 0
    if isinstance(backoff, (int, float)):
        return int(backoff)
    if isinstance(backoff, dict):
        backoff = BackoffOpts(**backoff)
    delay = backoff.delay or 0
    if backoff.type == "fixed":
        return delay
    if backoff.type == "exponential":
        return int(round((2 ** (attempts_made - 1)) * delay))
    if strategies and backoff.type in strategies:
        return int(strategies[backoff.type](attempts_made, err))
    raise ValueError("Unknown backoff strategy {}. If a custom backoff "
                     "strategy is used, specify it when the worker is "
                     "created.".format(backoff.type))


class Job:  # pylint: disable=too-many-instance-attributes
    """One job of an engine queue."""

    def __init__(self, queue, name: str, data: Any,
                 opts: Optional[JobsOpts] = None,
                 job_id: Optional[str] = None):
        self.queue = queue
        self.name = name
        self.data = data
        self.opts = opts if opts is not None else JobsOpts()
        self.id = job_id if job_id is not None else self.opts.job_id
        self.progress: Any = 0
        self.timestamp = self.opts.timestamp or now_millis()
        self.attempts_made = 0
        self.failed_reason: Optional[str] = None
        self.stacktrace: list = []
        self.returnvalue: Any = None
        self.finished_on: Optional[int] = None
        self.processed_on: Optional[int] = None

    def __repr__(self):
        return "Job({!r}, {!r})".format(self.id, self.name)

    @property
    def delay(self) -> int:
        return self.opts.delay or 0

    def to_key(self) -> str:
        return self.queue.to_key(self.id)

    def as_json(self) -> Dict[str, Optional[str]]:
        """The job as a stored record: every value is a string or None."""
        return {
            "id": self.id,
            "name": self.name,
            "data": json.dumps(self.data),
            "opts": json.dumps(self.opts.to_dict()),
            "progress": json.dumps(self.progress),
            "delay": str(self.delay),
            "timestamp": str(self.timestamp),
            "attemptsMade": str(self.attempts_made),
            "failedReason": self.failed_reason,
            "stacktrace": json.dumps(self.stacktrace),
            "returnvalue": json.dumps(self.returnvalue),
            "finishedOn": (None if self.finished_on is None
                           else str(self.finished_on)),
            "processedOn": (None if self.processed_on is None
                            else str(self.processed_on)),
        }

    @classmethod
    def from_json(cls, queue, raw: Dict[str, Optional[str]],
                  job_id: Optional[str] = None) -> Job:
        job = cls(queue, raw.get("name"), _loads(raw.get("data"), {}),
                  JobsOpts.from_dict(_loads(raw.get("opts"), {})),
                  job_id if job_id is not None else raw.get("id"))
        job.progress = _loads(raw.get("progress"), 0)
        job.timestamp = _int_or_none(raw.get("timestamp"))
        job.attempts_made = _int_or_none(raw.get("attemptsMade")) or 0
        job.failed_reason = raw.get("failedReason")
        job.stacktrace = _loads(raw.get("stacktrace"), [])
        job.returnvalue = _loads(raw.get("returnvalue"), None)
        job.finished_on = _int_or_none(raw.get("finishedOn"))
        job.processed_on = _int_or_none(raw.get("processedOn"))
        return job

    async def _ensure_exists(self, command: str) -> None:
        if self.id is None or not await self.queue.store.exists(self.id):
            raise JobNotFoundError(self.id, command)

    async def update_progress(self, progress: Any) -> None:
        await self._ensure_exists("updateProgress")
        self.progress = progress
        store = self.queue.store
        await store.set_fields(self.id, progress=json.dumps(progress))
        await store.emit("progress", job_id=self.id, data=progress)

    async def update(self, data: Any) -> None:
        await self._ensure_exists("updateData")
        self.data = data
        await self.queue.store.set_fields(self.id, data=json.dumps(data))

    async def remove(self) -> None:
        await self._ensure_exists("removeJob")
        store = self.queue.store
        await store.discard(self.id)
        await store.emit("removed", job_id=self.id)

    async def get_state(self) -> Optional[str]:
        if self.id is None:
            return None
        return await self.queue.store.state_of(self.id)

    async def is_completed(self) -> bool:
        return await self.get_state() == "completed"

    async def is_failed(self) -> bool:
        return await self.get_state() == "failed"

    async def is_delayed(self) -> bool:
        return await self.get_state() == "delayed"

    async def is_active(self) -> bool:
        return await self.get_state() == "active"

    async def is_waiting(self) -> bool:
        return await self.get_state() in ("wait", "paused")

    async def move_to_completed(
            self, return_value: Any = None,
            fetch_next: bool = True) -> Optional[Tuple[Dict, str]]:
        """
        Move the job to the completed set.

        When fetch_next is set, the next waiting job is moved to active
        and returned as (record, id); None when nothing is waiting.
        """
        await self._ensure_exists("moveToFinished")
        store = self.queue.store
        self.finished_on = now_millis()
        self.returnvalue = return_value
        self.attempts_made += 1
        await store.finish(
            self.id, "completed", self.finished_on, {
                "returnvalue": json.dumps(return_value),
                "finishedOn": str(self.finished_on),
                "attemptsMade": str(self.attempts_made),
            }, remove=bool(self.opts.remove_on_complete))
        LOG.debug("job %s completed", self.id)
        await store.emit("completed", job_id=self.id,
                         returnvalue=return_value)

        if fetch_next:
            next_job = await self.queue.move_to_active()
            if next_job is not None:
                return next_job.as_json(), next_job.id
        return None

    async def move_to_failed(
            self, err: Any,
            backoff_strategies: Optional[Dict[str, Callable]] = None) -> None:
        """
        Record a failed attempt.

        The job is retried (after its backoff delay) while attempts
        remain, otherwise it is moved to the failed set. An unknown
        backoff strategy raises ValueError and leaves the job as it is.
        """
        await self._ensure_exists("moveToFailed")
        attempts_made = self.attempts_made + 1
        retry = attempts_made < (self.opts.attempts or 1)
        delay = 0
        if retry:
            delay = backoff_delay(self.opts.backoff, attempts_made, err,
                                  backoff_strategies)

        self.attempts_made = attempts_made
        self.failed_reason = failure_reason(err)
        if isinstance(err, BaseException) and err.__traceback__ is not None:
            self.stacktrace.append("".join(traceback.format_exception(
                type(err), err, err.__traceback__)))
            limit = self.opts.stack_trace_limit
            if limit:
                self.stacktrace = self.stacktrace[-limit:]
        fields = {
            "attemptsMade": str(self.attempts_made),
            "failedReason": self.failed_reason,
            "stacktrace": json.dumps(self.stacktrace),
        }
        store = self.queue.store

        if retry:
            await store.retry(self.id, fields, self.opts,
                              now_millis() + delay if delay > 0 else None)
            LOG.debug("job %s failed, retry in %d ms", self.id, delay)
            return

        self.finished_on = now_millis()
        fields["finishedOn"] = str(self.finished_on)
        await store.finish(self.id, "failed", self.finished_on, fields,
                           remove=bool(self.opts.remove_on_fail))
        LOG.debug("job %s failed: %s", self.id, self.failed_reason)
        await store.emit("failed", job_id=self.id,
                         failed_reason=self.failed_reason)

    async def _settled(self) -> Optional[Tuple[str, Any]]:
        state = await self.get_state()
        if state not in ("completed", "failed"):
            return None
        record = await self.queue.store.get_record(self.id)
        if record is None:
            return None
        if state == "completed":
            return state, _loads(record.get("returnvalue"), None)
        return state, record.get("failedReason")

    async def wait_until_finished(self, queue_events, watchdog: int = 5000,
                                  ttl: Optional[int] = None) -> Any:
        """
        Wait for the job to complete or fail.

        Returns the job's return value or raises JobFailedError. The
        stored state is re-checked every `watchdog` ms in addition to
        the events; the whole wait is bounded by `ttl` ms (the watchdog
        period when no ttl is given) and raises asyncio.TimeoutError.
        """
        await queue_events.wait_until_ready()
        finished = asyncio.get_running_loop().create_future()

        def on_completed(args):
            if args.get("job_id") == self.id and not finished.done():
                finished.set_result(("completed", args.get("returnvalue")))

        def on_failed(args):
            if args.get("job_id") == self.id and not finished.done():
                finished.set_result(("failed", args.get("failed_reason")))

        queue_events.on("completed", on_completed)
        queue_events.on("failed", on_failed)
        horizon = ttl if ttl is not None else watchdog
        try:
            kind, value = await asyncio.wait_for(
                self._watch(finished, watchdog), horizon / 1000.0)
        finally:
            queue_events.off("completed", on_completed)
            queue_events.off("failed", on_failed)
        if kind == "failed":
            raise JobFailedError(value)
        return value

    async def _watch(self, finished, watchdog: int) -> Tuple[str, Any]:
        while True:
            settled = await self._settled()
            if settled is not None:
                return settled
            done, _ = await asyncio.wait({finished}, timeout=watchdog / 1000.0)
            if done:
                return finished.result()

"""
Redis storage of one engine queue.

Every key of a queue lives under its namespace "<prefix>:<name>:":

    <id>          hash, the job record (string values, absent when unset)
    id            counter of generated job ids
    seq           counter ordering the wait and active sets
    wait          zset of waiting jobs, by priority then insertion order
    active        zset of jobs being processed, oldest first
    delayed       zset of delayed jobs, by due time in ms
    completed     zset of completed jobs, by finish time in ms
    failed        zset of failed jobs, by finish time in ms
    meta          hash, "paused" is set while the queue is paused
    repeat        zset of repeatable schedules, by next occurrence in ms
    repeat:info   hash of the schedules' fields, JSON per schedule key
    events        pub/sub channel of the queue's lifecycle events

Multi-key changes run in MULTI/EXEC transactions; claims (taking the
next waiting job, promoting a due delayed job) rely on the single
command result of ZPOPMIN/ZREM so that concurrent workers never get
the same job.
"""

from __future__ import annotations

from dataclasses import asdict
from hashlib import md5
import logging
from typing import Any, Dict, List, Optional

from redis.exceptions import WatchError
import simplejson as json

from .types import (ACTIVE, COMPLETED, DELAYED, FAILED, PAUSED, WAIT,
                    JobsOpts, RepeatableJob)

LOG = logging.getLogger(__name__)

# Wait set scores: priority * PRIORITY_SPAN + PRIORITY_OFFSET +/- seq
PRIORITY_SPAN = 2 ** 32
PRIORITY_OFFSET = 2 ** 31

_SETS = (WAIT, ACTIVE, DELAYED, COMPLETED, FAILED)


def repeat_job_prefix(job_id: Optional[str], repeat_job_key: str) -> str:
    """Id prefix shared by every occurrence of one repeatable schedule."""
    digest = md5(repeat_job_key.encode()).hexdigest()
    if job_id:
        return "repeat:{}:{}:".format(job_id, digest)
    return "repeat:{}:".format(digest)


def wait_score(priority: Optional[int], lifo: Optional[bool],
               seq: int) -> int:
    """
    Rank of a job in the wait set, lowest first.

    Jobs without a priority rank as priority 0; within one priority,
    lifo jobs go first, latest first.
    """
    offset = PRIORITY_OFFSET - seq if lifo else PRIORITY_OFFSET + seq
    return (priority or 0) * PRIORITY_SPAN + offset


def _mapping(record: Dict[str, Optional[str]]) -> Dict[str, str]:
    return {key: value for key, value in record.items() if value is not None}


class QueueStore:
    # pylint: disable=too-many-public-methods

    def __init__(self, connection, queue_key: str):
        self.connection = connection
        self.queue_key = queue_key

    @property
    def client(self):
        return self.connection.client

    def key(self, type_: str) -> str:
        return self.queue_key + type_

    @property
    def events_key(self) -> str:
        return self.key("events")

    async def next_id(self) -> str:
        return str(await self.client.incr(self.key("id")))

    async def _wait_entry(self, job_id: str, priority: Optional[int],
                          lifo: Optional[bool]) -> Dict[str, int]:
        seq = await self.client.incr(self.key("seq"))
        return {job_id: wait_score(priority, lifo, seq)}

    async def emit(self, event: str, **args) -> None:
        args["event"] = event
        await self.client.publish(self.events_key, json.dumps(args))

    # Job records

    async def exists(self, job_id: str) -> bool:
        return bool(await self.client.exists(self.key(job_id)))

    async def get_record(self, job_id: str) -> Optional[Dict[str, str]]:
        record = await self.client.hgetall(self.key(job_id))
        return record or None

    async def set_fields(self, job_id: str, **fields: Optional[str]) -> None:
        mapping = _mapping(fields)
        if mapping:
            await self.client.hset(self.key(job_id), mapping=mapping)

    async def add_job(self, job_id: str, record: Dict[str, Optional[str]],
                      opts: JobsOpts,
                      delayed_until: Optional[int] = None
                      ) -> Optional[Dict[str, str]]:
        """
        Store a new job, waiting or delayed until `delayed_until` ms.

        Nothing is written when a job with the same id exists; its
        record is returned instead.
        """
        job_key = self.key(job_id)
        entry = None
        if delayed_until is None:
            entry = await self._wait_entry(job_id, opts.priority, opts.lifo)
        async with self.client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(job_key)
                existing = await pipe.hgetall(job_key)
                if existing:
                    return existing
                pipe.multi()
                pipe.hset(job_key, mapping=_mapping(record))
                if entry is None:
                    pipe.zadd(self.key(DELAYED), {job_id: delayed_until})
                else:
                    pipe.zadd(self.key(WAIT), entry)
                await pipe.execute()
            except WatchError:
                LOG.debug("job %s was added concurrently", job_id)
                return await self.get_record(job_id)
        return None

    # States

    async def is_paused(self) -> bool:
        return await self.client.hget(self.key("meta"), "paused") == "1"

    async def set_paused(self, paused: bool) -> None:
        if paused:
            await self.client.hset(self.key("meta"), "paused", "1")
        else:
            await self.client.hdel(self.key("meta"), "paused")

    async def state_of(self, job_id: str) -> Optional[str]:
        async with self.client.pipeline(transaction=False) as pipe:
            for job_type in (COMPLETED, FAILED, DELAYED, ACTIVE, WAIT):
                pipe.zscore(self.key(job_type), job_id)
            pipe.hget(self.key("meta"), "paused")
            completed, failed, delayed, active, wait, paused = (
                await pipe.execute())
        if completed is not None:
            return COMPLETED
        if failed is not None:
            return FAILED
        if delayed is not None:
            return DELAYED
        if active is not None:
            return ACTIVE
        if wait is not None:
            return PAUSED if paused == "1" else WAIT
        return None

    async def _set_of(self, job_type: str) -> Optional[str]:
        """Key of the set holding a state's jobs, None for an empty state."""
        if job_type in (WAIT, PAUSED):
            if await self.is_paused() != (job_type == PAUSED):
                return None
            return self.key(WAIT)
        if job_type not in _SETS:
            raise ValueError("Unknown job type {}".format(job_type))
        return self.key(job_type)

    async def count(self, job_type: str) -> int:
        key = await self._set_of(job_type)
        if key is None:
            return 0
        return await self.client.zcard(key)

    async def ids(self, job_type: str, start: int = 0, end: int = -1,
                  asc: bool = True) -> List[str]:
        """Inclusive range of a state's job ids, oldest first when asc."""
        key = await self._set_of(job_type)
        if key is None:
            return []
        if asc:
            return await self.client.zrange(key, start, end)
        return await self.client.zrevrange(key, start, end)

    # Moves

    async def pop_waiting(self, processed_on: int) -> Optional[str]:
        """Move the next waiting job to active; None when paused or empty."""
        if await self.is_paused():
            return None
        popped = await self.client.zpopmin(self.key(WAIT))
        if not popped:
            return None
        job_id = popped[0][0]
        seq = await self.client.incr(self.key("seq"))
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.zadd(self.key(ACTIVE), {job_id: seq})
            pipe.hset(self.key(job_id), "processedOn", str(processed_on))
            await pipe.execute()
        return job_id

    async def promote_delayed(self, now: int) -> List[str]:
        """Move the delayed jobs due at `now` to the wait set."""
        promoted = []
        due = await self.client.zrangebyscore(self.key(DELAYED), "-inf", now)
        for job_id in due:
            if not await self.client.zrem(self.key(DELAYED), job_id):
                continue
            raw = await self.client.hget(self.key(job_id), "opts")
            opts = JobsOpts.from_dict(json.loads(raw) if raw else None)
            await self.client.zadd(
                self.key(WAIT),
                await self._wait_entry(job_id, opts.priority, opts.lifo))
            promoted.append(job_id)
        return promoted

    async def retry(self, job_id: str, fields: Dict[str, Optional[str]],
                    opts: JobsOpts, delayed_until: Optional[int]) -> None:
        """Put a failed attempt back in the wait or delayed set."""
        entry = None
        if delayed_until is None:
            entry = await self._wait_entry(job_id, opts.priority, opts.lifo)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.zrem(self.key(ACTIVE), job_id)
            pipe.hset(self.key(job_id), mapping=_mapping(fields))
            if entry is None:
                pipe.zadd(self.key(DELAYED), {job_id: delayed_until})
            else:
                pipe.zadd(self.key(WAIT), entry)
            await pipe.execute()

    async def finish(self, job_id: str, target: str, finished_on: int,
                     fields: Dict[str, Optional[str]],
                     remove: bool = False) -> None:
        """Move a job to the completed or failed set, or drop it."""
        async with self.client.pipeline(transaction=True) as pipe:
            for job_type in (WAIT, ACTIVE, DELAYED):
                pipe.zrem(self.key(job_type), job_id)
            if remove:
                pipe.zrem(self.key(COMPLETED), job_id)
                pipe.zrem(self.key(FAILED), job_id)
                pipe.delete(self.key(job_id))
            else:
                pipe.hset(self.key(job_id), mapping=_mapping(fields))
                pipe.zadd(self.key(target), {job_id: finished_on})
            await pipe.execute()

    async def discard(self, job_id: str) -> None:
        """Remove a job from every set and drop its record."""
        async with self.client.pipeline(transaction=True) as pipe:
            for job_type in _SETS:
                pipe.zrem(self.key(job_type), job_id)
            pipe.delete(self.key(job_id))
            await pipe.execute()

    # Repeatable schedules

    async def get_repeatable(self, repeat_job_key: str
                             ) -> Optional[RepeatableJob]:
        info = await self.client.hget(self.key("repeat:info"), repeat_job_key)
        if info is None:
            return None
        return RepeatableJob(**json.loads(info))

    async def save_repeatable(self, entry: RepeatableJob) -> None:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.zadd(self.key("repeat"), {entry.key: entry.next or 0})
            pipe.hset(self.key("repeat:info"), entry.key,
                      json.dumps(asdict(entry)))
            await pipe.execute()

    async def repeatable_entries(self, start: int = 0, end: int = -1,
                                 asc: bool = False) -> List[RepeatableJob]:
        if asc:
            keys = await self.client.zrange(self.key("repeat"), start, end)
        else:
            keys = await self.client.zrevrange(self.key("repeat"), start, end)
        if not keys:
            return []
        infos = await self.client.hmget(self.key("repeat:info"), keys)
        return [RepeatableJob(**json.loads(info)) for info in infos
                if info is not None]

    async def repeatable_count(self) -> int:
        return await self.client.zcard(self.key("repeat"))

    async def remove_repeatable(self, repeat_job_id: Optional[str],
                                repeat_job_key: str) -> int:
        """
        Drop a repeatable schedule and its pending occurrence.

        Returns the number of removed delayed occurrences.
        """
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.zrem(self.key("repeat"), repeat_job_key)
            pipe.hdel(self.key("repeat:info"), repeat_job_key)
            await pipe.execute()
        prefix = repeat_job_prefix(repeat_job_id, repeat_job_key)
        removed = [job_id for job_id
                   in await self.client.zrange(self.key(DELAYED), 0, -1)
                   if job_id.startswith(prefix)]
        for job_id in removed:
            await self.discard(job_id)
        return len(removed)

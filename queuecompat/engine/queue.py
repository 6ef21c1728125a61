"""
Queue handle of the queue engine.

QueueBase resolves the connection shared by every handle kind (queue,
worker, events); Queue adds, lists and counts jobs and moves the next
waiting job to active for the workers.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional, Tuple

from .connection import Connection
from .interface import EngineQueue
from .job import Job
from .repeat import Repeat
from .store import QueueStore
from .types import (ACTIVE, COMPLETED, DELAYED, FAILED, WAIT, ClientType,
                    JobsOpts, QueueOptions, now_millis, sanitize_job_types)

LOG = logging.getLogger(__name__)

DEFAULT_PREFIX = "bull"


def as_connection(conn) -> Connection:
    """A Connection as is; an asyncio Redis client wrapped in one."""
    if isinstance(conn, Connection):
        return conn
    return Connection.wrap(conn)


def resolve_connection(opts, client_type: ClientType) -> Tuple[Any, bool]:
    """
    Pick the connection of a handle.

    Returns (connection, owned). Owned connections are closed with the
    handle; connections from a client factory or passed in as instances
    belong to the caller. Blocking handles get a dedicated connection
    they do not share with other handles.
    """
    create_client = getattr(opts, "create_client", None)
    if create_client is not None:
        client = create_client(client_type)
        if client is not None:
            return as_connection(client), False
    blocking = client_type is ClientType.BLOCKING
    conn = opts.connection
    if conn is None:
        return Connection(dedicated=blocking), True
    if isinstance(conn, dict):
        return Connection(dedicated=blocking, **conn), True
    conn = as_connection(conn)
    if blocking:
        return conn.duplicate(), True
    return conn, False


class QueueBase:
    def __init__(self, name: str, opts, client_type: ClientType):
        self.name = name
        self.opts = opts
        self.prefix = opts.prefix or DEFAULT_PREFIX
        self.connection, self._owns_connection = resolve_connection(
            opts, client_type)
        self.closing = False

    def __repr__(self):
        return "{}({!r})".format(type(self).__name__, self.name)

    def to_key(self, type_: str) -> str:
        return "{}:{}:{}".format(self.prefix, self.name, type_)

    @property
    def store(self) -> QueueStore:
        return self.connection.store(self.to_key(""))

    async def wait_until_ready(self):
        await self.connection.wait_until_ready()
        return self

    def base64_name(self) -> str:
        return base64.b64encode(self.name.encode()).decode()

    def client_name(self) -> str:
        return "{}:{}".format(self.prefix, self.base64_name())

    async def close(self) -> None:
        self.closing = True
        if self._owns_connection:
            await self.connection.close()


class Queue(QueueBase, EngineQueue):
    # pylint: disable=too-many-public-methods

    def __init__(self, name: str, opts: Optional[QueueOptions] = None,
                 client_type: ClientType = ClientType.NORMAL):
        super().__init__(name, opts if opts is not None else QueueOptions(),
                         client_type)
        self.default_job_options = self.opts.default_job_options
        self._repeat: Optional[Repeat] = None

    @property
    def repeat(self) -> Repeat:
        if self._repeat is None:
            self._repeat = Repeat(self)
        return self._repeat

    async def add(self, name: str, data: Any,
                  opts: Optional[JobsOpts] = None) -> Optional[Job]:
        opts = (opts or JobsOpts()).merged(self.default_job_options)
        if opts.repeat is not None:
            return await self.repeat.add_next_repeatable_job(
                name, data, opts, opts.job_id, skip_check_exists=True)
        return await self.add_job(name, data, opts)

    async def add_job(self, name: str, data: Any, opts: JobsOpts) -> Job:
        """Store a job in the wait set or the delayed set."""
        store = self.store
        job = Job(self, name, data, opts)
        if job.id is None:
            job.id = await store.next_id()
        delayed_until = None
        if job.delay > 0:
            delayed_until = job.timestamp + job.delay
        existing = await store.add_job(job.id, job.as_json(), opts,
                                       delayed_until)
        if existing is not None:
            LOG.debug("job %s already exists", job.id)
            return Job.from_json(self, existing, job.id)
        if delayed_until is not None:
            await store.emit("delayed", job_id=job.id, delay=job.delay)
        else:
            await store.emit("waiting", job_id=job.id)
        LOG.debug("added job %s to %s", job.id, self.name)
        return job

    async def pause(self) -> None:
        await self.store.set_paused(True)
        await self.store.emit("paused")

    async def resume(self) -> None:
        await self.store.set_paused(False)
        await self.store.emit("resumed")

    async def is_paused(self) -> bool:
        return await self.store.is_paused()

    async def count(self) -> int:
        return await self.get_job_count_by_types(WAIT, "paused", DELAYED)

    async def get_job_counts(self, *types: str) -> Dict[str, int]:
        store = self.store
        return {job_type: await store.count(job_type)
                for job_type in sanitize_job_types(types)}

    async def get_job_count_by_types(self, *types: str) -> int:
        counts = await self.get_job_counts(*types)
        return sum(counts.values())

    async def get_completed_count(self) -> int:
        return await self.get_job_count_by_types(COMPLETED)

    async def get_failed_count(self) -> int:
        return await self.get_job_count_by_types(FAILED)

    async def get_delayed_count(self) -> int:
        return await self.get_job_count_by_types(DELAYED)

    async def get_active_count(self) -> int:
        return await self.get_job_count_by_types(ACTIVE)

    async def get_waiting_count(self) -> int:
        return await self.get_job_count_by_types(WAIT)

    async def get_jobs(self, types=None, start: int = 0, end: int = -1,
                       asc: bool = False) -> List[Job]:
        jobs = []
        seen = set()
        for job_type in sanitize_job_types(types):
            for job_id in await self.store.ids(job_type, start, end, asc):
                if job_id in seen:
                    continue
                seen.add(job_id)
                job = await self.get_job(job_id)
                if job is not None:
                    jobs.append(job)
        return jobs

    async def get_waiting(self, start: int = 0, end: int = -1) -> List[Job]:
        return await self.get_jobs([WAIT], start, end, True)

    async def get_active(self, start: int = 0, end: int = -1) -> List[Job]:
        return await self.get_jobs([ACTIVE], start, end, True)

    async def get_delayed(self, start: int = 0, end: int = -1) -> List[Job]:
        return await self.get_jobs([DELAYED], start, end, True)

    async def get_completed(self, start: int = 0, end: int = -1) -> List[Job]:
        return await self.get_jobs([COMPLETED], start, end, False)

    async def get_failed(self, start: int = 0, end: int = -1) -> List[Job]:
        return await self.get_jobs([FAILED], start, end, False)

    async def get_job(self, job_id: str) -> Optional[Job]:
        raw = await self.store.get_record(job_id)
        if raw is None:
            return None
        return Job.from_json(self, raw, job_id)

    async def get_workers(self) -> List[Dict[str, str]]:
        clients = await self.connection.client_list()
        return [client for client in clients
                if client.get("name") == self.client_name()]

    def parse_client_list(self, text: str) -> List[Dict[str, str]]:
        """Keep the clients of a client list that are workers of this queue."""
        clients = []
        for line in text.splitlines():
            if not line.strip():
                continue
            client = dict(
                item.split("=", 1) for item in line.split() if "=" in item)
            if client.get("name") == self.client_name():
                clients.append(client)
        return clients

    async def move_to_active(self) -> Optional[Job]:
        """
        Take the next waiting job, or None when paused or nothing waits.

        Delayed jobs that are due are promoted first. When the job is an
        occurrence of a repeatable schedule, the schedule's following
        occurrence is added.
        """
        store = self.store
        now = now_millis()
        for job_id in await store.promote_delayed(now):
            await store.emit("waiting", job_id=job_id)
        job_id = await store.pop_waiting(now)
        if job_id is None:
            return None
        job = await self.get_job(job_id)
        if job is None:
            LOG.warning("job %s has no record", job_id)
            await store.discard(job_id)
            return None
        await store.emit("active", job_id=job_id)

        repeat_job_key = job.opts.repeat_job_key
        if repeat_job_key and job.opts.repeat is not None:
            entry = await self.repeat.get_repeatable_job(repeat_job_key)
            if entry is not None:
                await self.repeat.add_next_repeatable_job(
                    job.name, job.data, job.opts, entry.id)
        return job

"""
Redis connection of the queue engine.

A Connection lazily opens an asyncio Redis client, of the class
registered as service().redis.client (redis.asyncio.Redis by default),
and hands out the QueueStore of each queue namespace it serves.
Responses are always decoded to str.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..service import service
from .errors import ConnectionClosedError
from .store import QueueStore

LOG = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6379


class Connection:
    """
    A handle on one Redis database.

    Accepts the redis-py connection options (host, port, db, password,
    username, socket_timeout, ...). A dedicated connection runs every
    command over a single socket, so that the client name it sets
    identifies exactly one client in CLIENT LIST.
    """

    # pylint: disable=too-many-instance-attributes

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT,
                 db: int = 0, password: Optional[str] = None,
                 username: Optional[str] = None, dedicated: bool = False,
                 **options):
        self.host = host or DEFAULT_HOST
        self.port = int(port or DEFAULT_PORT)
        self.db = int(db or 0)
        self.password = password
        self.username = username
        self.dedicated = dedicated
        self.options = options
        self.name: Optional[str] = None
        self._client = None
        self._owns_client = True
        self._closed = False

    @classmethod
    def wrap(cls, client) -> Connection:
        """
        Connection over an existing asyncio Redis client.

        The client must decode responses; it is not closed with the
        connection.
        """
        conn = cls()
        kwargs = getattr(client, "connection_pool", None)
        kwargs = getattr(kwargs, "connection_kwargs", {})
        conn.host = kwargs.get("host", conn.host)
        conn.port = int(kwargs.get("port", conn.port))
        conn.db = int(kwargs.get("db", conn.db))
        conn._client = client
        conn._owns_client = False
        return conn

    def __repr__(self):
        return "Connection({}:{}/{})".format(self.host, self.port, self.db)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def client(self):
        if self._closed:
            raise ConnectionClosedError("Connection is closed")
        if self._client is None:
            client_class = service().redis.client
            self._client = client_class(
                host=self.host, port=self.port, db=self.db,
                password=self.password, username=self.username,
                client_name=self.name, decode_responses=True,
                single_connection_client=self.dedicated, **self.options)
            LOG.debug("opened %r", self)
        return self._client

    def duplicate(self, dedicated: bool = True) -> Connection:
        """A new connection to the same database."""
        if not self._owns_client:
            # a dedicated client sharing the caller's connection pool
            conn = Connection.wrap(self.client.client())
            conn._owns_client = True
            return conn
        return Connection(self.host, self.port, self.db, self.password,
                          self.username, dedicated, **self.options)

    async def wait_until_ready(self) -> Connection:
        """Check the server answers; connection errors propagate."""
        await self.client.ping()
        return self

    def store(self, queue_key: str) -> QueueStore:
        return QueueStore(self, queue_key)

    async def client_setname(self, name: str) -> None:
        self.name = name
        if self._client is not None:
            await self._client.client_setname(name)

    async def client_list(self) -> List[Dict[str, Any]]:
        """Connected clients, one dict of CLIENT LIST fields per client."""
        return await self.client.client_list()

    async def remove_repeatable(self, queue_key: str,
                                repeat_job_id: Optional[str],
                                repeat_job_key: str) -> int:
        return await self.store(queue_key).remove_repeatable(
            repeat_job_id, repeat_job_key)

    async def flushdb(self) -> None:
        await self.client.flushdb()

    async def close(self) -> None:
        if self._closed:
            return
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._closed = True
        LOG.debug("closed %r", self)

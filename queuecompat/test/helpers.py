import asyncio
import time
import unittest

import fakeredis

from queuecompat import Queue
from queuecompat.engine import Connection
from queuecompat.service import service
from queuecompat.service.registry import registerServices

QUEUE_NAME = 'test-queue'


def useFakeRedis():
    """Register the default engine over an in-memory Redis server."""
    service().clear(thisIsATest=True)
    service().register('redis.client', fakeredis.FakeAsyncRedis)
    registerServices()


async def flushRedis(**connOpts):
    conn = Connection(**connOpts)
    await conn.flushdb()
    await conn.close()


async def waitFor(predicate, timeout=2.0, interval=0.01):
    """Poll an (async) predicate until it is true; fail after timeout."""
    deadline = time.monotonic() + timeout
    while True:
        result = predicate()
        if asyncio.iscoroutine(result):
            result = await result
        if result:
            return result
        if time.monotonic() > deadline:
            raise AssertionError("condition not met within {}s".format(timeout))
        await asyncio.sleep(interval)


class QueueTestCase(unittest.IsolatedAsyncioTestCase):
    """Base for tests on a freshly flushed Redis database."""

    async def asyncSetUp(self):
        useFakeRedis()
        await flushRedis()
        self.queues = []

    async def asyncTearDown(self):
        await asyncio.gather(*[queue.close() for queue in self.queues])

    def newQueue(self, name=QUEUE_NAME, urlOrOpts=None, opts=None):
        queue = Queue(name, urlOrOpts, opts)
        self.queues.append(queue)
        return queue

import unittest
from unittest import mock

import fakeredis
import redis.asyncio

from queuecompat import Queue, engine
from queuecompat.service import service
from queuecompat.service.registry import registerServices


class ServiceTest(unittest.TestCase):
    def setUp(self):
        service().clear(thisIsATest=True)

    def tearDown(self):
        registerServices(testing=True)

    def testScoped(self):
        service().register('engine.Queue', engine.Queue)
        self.assertIs(engine.Queue, service().engine.Queue)
        self.assertTrue(service().registered('engine'))
        self.assertTrue(service().registered('engine.Queue'))
        self.assertFalse(service().registered('engine.Worker'))
        self.assertFalse(service().registered('redis.client'))

    def testMissing(self):
        with self.assertRaises(AttributeError):
            _ = service().engine
        service().register('engine.Queue', engine.Queue)
        with self.assertRaises(AttributeError):
            _ = service().engine.Worker

    def testRegisterTwice(self):
        service().register('redis.client', redis.asyncio.Redis)
        service().register('redis.client', redis.asyncio.Redis)
        with self.assertRaises(AssertionError):
            service().register('redis.client', fakeredis.FakeAsyncRedis)

    def testClearNeedsTestFlag(self):
        with self.assertRaises(AssertionError):
            service().clear()


class RegisterServicesTest(unittest.TestCase):
    def setUp(self):
        service().clear(thisIsATest=True)

    def tearDown(self):
        registerServices(testing=True)

    def testDefaults(self):
        registerServices()
        self.assertIs(engine.Queue, service().engine.Queue)
        self.assertIs(engine.Worker, service().engine.Worker)
        self.assertIs(engine.QueueEvents, service().engine.QueueEvents)
        self.assertIs(engine.Job, service().engine.Job)
        self.assertIs(engine.Connection, service().engine.Connection)
        self.assertIs(redis.asyncio.Redis, service().redis.client)

    def testKeepsRegisteredClient(self):
        service().register('redis.client', fakeredis.FakeAsyncRedis)
        registerServices()
        registerServices()
        self.assertIs(fakeredis.FakeAsyncRedis, service().redis.client)
        self.assertIs(engine.Queue, service().engine.Queue)

    def testConnectionUsesRegisteredClient(self):
        client = mock.Mock(name='client')
        clientClass = mock.Mock(return_value=client)
        service().register('redis.client', clientClass)
        registerServices()
        conn = engine.Connection(host='h', port=1234, db=3)
        self.assertIs(client, conn.client)
        kwargs = clientClass.call_args.kwargs
        self.assertEqual(('h', 1234, 3),
                         (kwargs['host'], kwargs['port'], kwargs['db']))
        self.assertTrue(kwargs['decode_responses'])

    def testKeepsRegisteredEngine(self):
        engineQueue = mock.Mock(name='Queue')
        service().register('engine.Queue', engineQueue)
        registerServices()
        self.assertIs(engineQueue, service().engine.Queue)
        self.assertIs(engine.Worker, service().engine.Worker)

        queue = Queue('registered')
        self.assertIs(engineQueue.return_value, queue.engineQueue())
        name, _ = engineQueue.call_args.args
        self.assertEqual('registered', name)

    def testTestingResets(self):
        service().register('redis.client', fakeredis.FakeAsyncRedis)
        registerServices(testing=True)
        self.assertIs(redis.asyncio.Redis, service().redis.client)

import unittest

import pytest

from queuecompat.config import DEFAULT_JOB_NAME
from queuecompat.dispatch import (AddShape, ProcessShape,
                                  RemoveRepeatableShape, isAsyncHandler,
                                  resolveAdd, resolveProcess,
                                  resolveRemoveRepeatable, takesDoneCallback)


def handler(job):
    return job


def callbackHandler(job, done):
    done(None, job)


@pytest.mark.parametrize("args, shape, name, concurrency", [
    ((handler,), ProcessShape.HANDLER, DEFAULT_JOB_NAME, 1),
    ((5, handler), ProcessShape.CONCURRENCY_HANDLER, DEFAULT_JOB_NAME, 5),
    ((-1, handler), ProcessShape.CONCURRENCY_HANDLER, DEFAULT_JOB_NAME, 1),
    ((0, handler), ProcessShape.CONCURRENCY_HANDLER, DEFAULT_JOB_NAME, 1),
    (("email", handler), ProcessShape.NAME_HANDLER, "email", 1),
    (("email", 3, handler), ProcessShape.NAME_CONCURRENCY_HANDLER, "email", 3),
    (("email", -4, handler), ProcessShape.NAME_CONCURRENCY_HANDLER, "email", 1),
])
def testProcessShapes(args, shape, name, concurrency):
    call = resolveProcess(args)
    assert call.shape is shape
    assert call.name == name
    assert call.concurrency == concurrency
    assert call.handler is handler
    assert call.handlerFile is None


class TestDispatch(unittest.TestCase):
    def testAddData(self):
        call = resolveAdd(({"x": 1},))
        self.assertIs(AddShape.DATA, call.shape)
        self.assertEqual(DEFAULT_JOB_NAME, call.name)
        self.assertEqual({"x": 1}, call.data)
        self.assertEqual({}, call.opts)

    def testAddDataOpts(self):
        opts = {"delay": 10}
        call = resolveAdd(({"x": 1}, opts))
        self.assertIs(AddShape.DATA, call.shape)
        self.assertEqual({"delay": 10}, call.opts)
        self.assertIsNot(opts, call.opts)

    def testAddNamed(self):
        call = resolveAdd(("job", {"x": 1}, {"priority": 1}))
        self.assertIs(AddShape.NAMED, call.shape)
        self.assertEqual("job", call.name)
        self.assertEqual({"x": 1}, call.data)
        self.assertEqual({"priority": 1}, call.opts)

    def testAddEmptyName(self):
        self.assertEqual(DEFAULT_JOB_NAME, resolveAdd(("", 1)).name)

    def testAddArgCount(self):
        with self.assertRaises(TypeError):
            resolveAdd(())
        with self.assertRaises(TypeError):
            resolveAdd(({"x": 1}, {}, {}))

    def testProcessFile(self):
        call = resolveProcess(("/tmp/processor.py",))
        self.assertIsNone(call.handler)
        self.assertEqual("/tmp/processor.py", call.handlerFile)
        call = resolveProcess((2, "/tmp/processor.py"))
        self.assertEqual(2, call.concurrency)
        self.assertEqual("/tmp/processor.py", call.handlerFile)

    def testProcessNoHandler(self):
        call = resolveProcess((None,))
        self.assertIsNone(call.handler)
        self.assertIsNone(call.handlerFile)

    def testProcessArgCount(self):
        with self.assertRaises(TypeError):
            resolveProcess(())
        with self.assertRaises(TypeError):
            resolveProcess(("a", 1, handler, None))

    def testRemoveRepeatable(self):
        call = resolveRemoveRepeatable(({"every": 10},))
        self.assertIs(RemoveRepeatableShape.REPEAT, call.shape)
        self.assertEqual(DEFAULT_JOB_NAME, call.name)
        self.assertEqual({"every": 10}, call.repeat)

        call = resolveRemoveRepeatable(("tick", {"every": 10}))
        self.assertIs(RemoveRepeatableShape.NAMED_REPEAT, call.shape)
        self.assertEqual("tick", call.name)

    def testRemoveRepeatableArgCount(self):
        with self.assertRaises(TypeError):
            resolveRemoveRepeatable(("tick",))
        with self.assertRaises(TypeError):
            resolveRemoveRepeatable(({"every": 10}, {"every": 20}))

    def testTakesDoneCallback(self):
        self.assertFalse(takesDoneCallback(handler))
        self.assertTrue(takesDoneCallback(callbackHandler))
        self.assertTrue(takesDoneCallback(lambda job, done: None))
        self.assertFalse(takesDoneCallback(lambda job, extra=None: None))

        async def asyncHandler(job):
            return job

        self.assertFalse(takesDoneCallback(asyncHandler))

    def testIsAsyncHandler(self):
        async def asyncHandler(job):
            return job

        class AsyncCallable(object):
            async def __call__(self, job):
                return job

        self.assertTrue(isAsyncHandler(asyncHandler))
        self.assertTrue(isAsyncHandler(AsyncCallable()))
        self.assertFalse(isAsyncHandler(handler))
        self.assertFalse(isAsyncHandler(lambda job: asyncHandler(job)))

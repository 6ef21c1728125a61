"""
Call shapes of the overloaded legacy operations.

Each overloaded operation accepts a closed set of positional call
shapes, told apart by argument count and the runtime kind of the
arguments only:

add(), Job(queue, ...):
    DATA    (data, opts?)           first argument is not a str
    NAMED   (name, data, opts?)     first argument is a str

process():
    HANDLER                   (handler)
    CONCURRENCY_HANDLER       (concurrency, handler)    first is a number
    NAME_HANDLER              (name, handler)           first is not a number
    NAME_CONCURRENCY_HANDLER  (name, concurrency, handler)

    handler is a callable or the path (str) of a processor file.
    Concurrency below 1 is raised to 1.

removeRepeatable():
    REPEAT        (repeat)
    NAMED_REPEAT  (name, repeat)    first argument is a str

Every resolver returns the canonical argument tuple of its operation.
Arguments of an unexpected kind leave the default in place; validation
of the result is left to the caller.
"""

from enum import Enum
import inspect
import numbers
from typing import Any, Callable, Dict, NamedTuple, Optional, Sequence

from .config import DEFAULT_JOB_NAME


class AddShape(Enum):
    DATA = "data, opts?"
    NAMED = "name, data, opts?"


class ProcessShape(Enum):
    HANDLER = "handler"
    CONCURRENCY_HANDLER = "concurrency, handler"
    NAME_HANDLER = "name, handler"
    NAME_CONCURRENCY_HANDLER = "name, concurrency, handler"


class RemoveRepeatableShape(Enum):
    REPEAT = "repeat"
    NAMED_REPEAT = "name, repeat"


class AddCall(NamedTuple):
    shape: AddShape
    name: str
    data: Any
    opts: Dict[str, Any]


class ProcessCall(NamedTuple):
    shape: ProcessShape
    name: str
    concurrency: int
    handler: Optional[Callable]
    handlerFile: Optional[str]


class RemoveRepeatableCall(NamedTuple):
    shape: RemoveRepeatableShape
    name: str
    repeat: Dict[str, Any]


def _checkArgCount(operation, args, low, high):
    if not low <= len(args) <= high:
        raise TypeError("{}() takes {} to {} arguments ({} given)".format(
            operation, low, high, len(args)))


def _isNumber(value):
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _concurrency(value):
    value = int(value)
    return value if value > 0 else 1


def resolveAdd(args: Sequence[Any]) -> AddCall:
    _checkArgCount("add", args, 1, 3)
    if isinstance(args[0], str):
        name = args[0] or DEFAULT_JOB_NAME
        data = args[1] if len(args) > 1 else None
        opts = args[2] if len(args) > 2 else None
        shape = AddShape.NAMED
    else:
        if len(args) > 2:
            raise TypeError(
                "add() takes (data, opts) when data is not a name")
        name = DEFAULT_JOB_NAME
        data = args[0]
        opts = args[1] if len(args) > 1 else None
        shape = AddShape.DATA
    return AddCall(shape, name, data, dict(opts or {}))


def resolveProcess(args: Sequence[Any]) -> ProcessCall:
    _checkArgCount("process", args, 1, 3)
    name = DEFAULT_JOB_NAME
    concurrency = 1
    if len(args) == 1:
        shape = ProcessShape.HANDLER
    elif len(args) == 2:
        if _isNumber(args[0]):
            shape = ProcessShape.CONCURRENCY_HANDLER
            concurrency = _concurrency(args[0])
        else:
            shape = ProcessShape.NAME_HANDLER
            if isinstance(args[0], str):
                name = args[0]
    else:
        shape = ProcessShape.NAME_CONCURRENCY_HANDLER
        if isinstance(args[0], str):
            name = args[0]
        if _isNumber(args[1]):
            concurrency = _concurrency(args[1])

    handler = handlerFile = None
    if callable(args[-1]):
        handler = args[-1]
    elif isinstance(args[-1], str):
        handlerFile = args[-1]
    return ProcessCall(shape, name, concurrency, handler, handlerFile)


def resolveRemoveRepeatable(args: Sequence[Any]) -> RemoveRepeatableCall:
    _checkArgCount("removeRepeatable", args, 1, 2)
    if isinstance(args[0], str):
        if len(args) != 2:
            raise TypeError("removeRepeatable() takes (name, repeat)")
        return RemoveRepeatableCall(
            RemoveRepeatableShape.NAMED_REPEAT, args[0], dict(args[1] or {}))
    if len(args) != 1:
        raise TypeError("removeRepeatable() takes (repeat) or (name, repeat)")
    return RemoveRepeatableCall(
        RemoveRepeatableShape.REPEAT, DEFAULT_JOB_NAME, dict(args[0] or {}))


def takesDoneCallback(handler: Callable) -> bool:
    """True for legacy callback-style handlers, handler(job, done)."""
    try:
        params = inspect.signature(handler).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = [
        param for param in params
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD)
        and param.default is param.empty
    ]
    return len(positional) > 1


def isAsyncHandler(handler: Callable) -> bool:
    """
    True for handlers run on the event loop: coroutine functions and
    objects with an async __call__. Other handlers run in a thread.
    """
    return (inspect.iscoroutinefunction(handler)
            or inspect.iscoroutinefunction(getattr(handler, '__call__', None)))

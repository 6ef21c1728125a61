import redis.asyncio

from . import service
from .. import engine


def registerServices(testing: bool = False) -> None:
    """
    Register the engine used by the legacy facade.

    Args:
        testing: If True, clear services for testing

    Services already registered (e.g. another engine implementation,
    or a Redis test double as "redis.client") are kept.
    """
    if testing:
        service().clear(thisIsATest=testing)

    defaults = [("redis.client", redis.asyncio.Redis)]
    for name in ("Queue", "Worker", "QueueEvents", "Job", "Connection"):
        defaults.append(("engine." + name, getattr(engine, name)))
    for identifier, obj in defaults:
        if not service().registered(identifier):
            service().register(identifier, obj)

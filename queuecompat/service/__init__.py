"""
Registry of the implementations the facade is built on.

Identifiers are dotted: "engine.Queue" registers Queue in the "engine"
scope, read back as service().engine.Queue. An identifier can only be
registered once, except with the same object.
"""


class _Registry(object):
    def __init__(self):
        self._services = {}

    def _scope(self, name, create=False):
        scope = self._services.get(name)
        if scope is None and create:
            scope = self._services[name] = _Registry()
        return scope

    def register(self, identifier, obj):
        scopeName, _, key = identifier.partition('.')
        if key:
            self._scope(scopeName, create=True).register(key, obj)
            return
        current = self._services.get(identifier, obj)
        assert current == obj, "{} is already registered".format(identifier)
        self._services[identifier] = obj

    def registered(self, identifier):
        scopeName, _, key = identifier.partition('.')
        if not key:
            return scopeName in self._services
        scope = self._scope(scopeName)
        return scope is not None and scope.registered(key)

    def clear(self, thisIsATest=False):
        assert thisIsATest
        self._services.clear()

    def __getattr__(self, key):
        if key.startswith('__') or key not in self._services:
            raise AttributeError(key)
        return self._services[key]


__REGISTRY = _Registry()


def service():
    return __REGISTRY

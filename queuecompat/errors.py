"""Exceptions raised by the legacy queue facade."""


class QueueCompatError(Exception):
    pass


class NotSupportedError(QueueCompatError, NotImplementedError):
    """A legacy operation the engine has no counterpart for."""

    def __init__(self, message="Not supported"):
        super().__init__(message)


class ProcessorError(QueueCompatError, ValueError):
    pass


class MissingHandlerError(ProcessorError):
    def __init__(self):
        super().__init__("Cannot set an undefined handler")


class DuplicateHandlerError(ProcessorError):
    def __init__(self, name):
        super().__init__("Cannot define the same handler twice " + name)
        self.name = name


class NamedProcessorError(ProcessorError):
    def __init__(self):
        super().__init__(
            "Named processors are not supported with sandboxed workers")


class UnknownJobTypeError(QueueCompatError, LookupError):
    def __init__(self, name):
        super().__init__("Missing process handler for job type " + name)
        self.name = name


class RepeatOptionsError(QueueCompatError, ValueError):
    pass


class JobIdError(QueueCompatError, ValueError):
    pass

"""
Adapters between the legacy queue API and the engine.

This package contains the pure translations the legacy facade is built
on: option records, job snapshots and repeatable job keys.
"""

from . import options, repeat_key, serialization

__all__ = ["options", "repeat_key", "serialization"]

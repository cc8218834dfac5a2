"""
Visionary Storage Module

Durable key-value backends and the project store built on them.
"""

from .backends import JsonFileStorage, KeyValueStorage, MemoryStorage
from .project_store import ProjectStore

__all__ = [
    'KeyValueStorage',
    'JsonFileStorage',
    'MemoryStorage',
    'ProjectStore',
]

"""Cache store implementations.

Provides in-memory, filesystem, remote object store and null backends.
"""

from .fs import FSStore
from .memory import MemoryStore
from .null import NullStore
from .remote import RemoteStore

__all__ = [
    "FSStore",
    "MemoryStore",
    "NullStore",
    "RemoteStore",
]

"""Price stores for resolved unit prices."""

from costdelta.storage.protocol import PriceStore
from costdelta.storage.filesystem import FileSystemPriceStore
from costdelta.storage.memory import InMemoryPriceStore

__all__ = ["PriceStore", "FileSystemPriceStore", "InMemoryPriceStore"]

from slotbook.storage.memory_store import MemoryStore
from slotbook.storage.store import AvailabilityStore

__all__ = ["AvailabilityStore", "MemoryStore"]

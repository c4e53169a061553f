from src.store.kv import JsonFileStore, KeyValueStore, MemoryStore
from src.store.results import STORAGE_KEYS, ResultStore

__all__ = ["STORAGE_KEYS", "JsonFileStore", "KeyValueStore", "MemoryStore", "ResultStore"]

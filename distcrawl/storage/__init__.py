"""distcrawl.storage: page persistence contract and implementations."""
from distcrawl.storage.base import StorageError, StorageService
from distcrawl.storage.filesystem import FileSystemStorage
from distcrawl.storage.memory import InMemoryStorage

__all__ = ["StorageError", "StorageService", "InMemoryStorage", "FileSystemStorage"]

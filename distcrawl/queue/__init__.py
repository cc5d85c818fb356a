"""distcrawl.queue: the frontier transport contract and an in-process implementation."""
from distcrawl.queue.base import QueueError, UrlQueue
from distcrawl.queue.memory import InMemoryUrlQueue

__all__ = ["QueueError", "UrlQueue", "InMemoryUrlQueue"]

"""Persistence collaborators for floors, offers, events and alerts."""

from .base import Store
from .memory import InMemoryStore

__all__ = ["InMemoryStore", "Store"]

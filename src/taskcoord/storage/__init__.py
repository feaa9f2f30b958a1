"""Persistence for the task tracker and agent registry documents."""

from .json_store import JsonStore, MemoryStore, Store, new_agents, new_tracker

__all__ = ["JsonStore", "MemoryStore", "Store", "new_agents", "new_tracker"]

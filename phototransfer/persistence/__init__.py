"""Durable storage for index snapshots and checkpoints."""
from .store import IndexStore, SnapshotSequence

__all__ = ["IndexStore", "SnapshotSequence"]

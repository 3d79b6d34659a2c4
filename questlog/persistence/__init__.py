"""Storage adapters for the local-only and remote-backed modes."""

from questlog.persistence.base import PersistenceAdapter, Snapshot, XpResult
from questlog.persistence.local import LocalAdapter
from questlog.persistence.remote import RemoteAdapter
from questlog.persistence.selection import resolve_assignees, select_adapter


__all__ = [
    "LocalAdapter",
    "PersistenceAdapter",
    "RemoteAdapter",
    "Snapshot",
    "XpResult",
    "resolve_assignees",
    "select_adapter",
]

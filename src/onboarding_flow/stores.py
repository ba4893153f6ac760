"""
Draft Stores.

Byte-oriented key/value backends behind DraftPersistence:

- MemoryDraftStore: process-local dict (tests, single-process hosts)
- FileDraftStore: one file per key under a directory
- SupabaseDraftStore: one row per key in an ``onboarding_drafts`` table

Stores raise on I/O failure. DraftPersistence decides what is fatal.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from supabase import Client

    from .config import OnboardingSettings

logger = logging.getLogger(__name__)


class DraftStore(ABC):
    """Persistence port: get / set / delete raw bytes by key."""

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Stored bytes, or None when nothing is stored under key."""

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the key. Deleting a missing key is not an error."""


class MemoryDraftStore(DraftStore):
    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class FileDraftStore(DraftStore):
    """Stores each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def set(self, key: str, value: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        # Write then rename so a crash never leaves a half-written draft
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(value)
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class SupabaseDraftStore(DraftStore):
    """
    Draft rows in a Supabase table.

    Expected table shape: ``key text primary key, payload text,
    updated_at timestamptz``.
    """

    def __init__(self, client: "Client", table: str = "onboarding_drafts") -> None:
        self.client = client
        self.table = table

    def get(self, key: str) -> bytes | None:
        result = self.client.table(self.table).select("payload").eq("key", key).execute()
        if not result.data:
            return None
        return result.data[0]["payload"].encode("utf-8")

    def set(self, key: str, value: bytes) -> None:
        self.client.table(self.table).upsert({
            "key": key,
            "payload": value.decode("utf-8"),
        }).execute()

    def delete(self, key: str) -> None:
        self.client.table(self.table).delete().eq("key", key).execute()


def create_draft_store(settings: "OnboardingSettings") -> DraftStore:
    """
    Build the store configured in settings.

    Supabase is used when its URL and key are set, otherwise drafts go to
    files under ``settings.draft_dir``.
    """
    if settings.supabase_url and settings.supabase_service_role_key:
        from supabase import create_client

        client = create_client(settings.supabase_url, settings.supabase_service_role_key)
        logger.info(f"Using Supabase draft store (table={settings.supabase_drafts_table})")
        return SupabaseDraftStore(client, settings.supabase_drafts_table)

    logger.info(f"Using file draft store at {settings.draft_dir}")
    return FileDraftStore(settings.draft_dir)

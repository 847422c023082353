# src/nisabwatch/application/preferences.py
"""
Preferences Service - Local-First User Settings with Remote Sync

User preferences live in two places: a fast local JSON store that every read
uses, and an optional remote record store (Supabase) that is authoritative.
Reads return the local copy immediately and reconcile in the background
(remote wins; a user without a remote row gets the local copy pushed). Writes
update the local copy immediately and push to the remote in the background.

Remote failures are logged and remembered per user (sync_status) but are never
shown to the user and never retried; the next write or load tries again.

Files that USE this module:
- nisabwatch.application.alerts (AlertDispatcher records last-notified times)
- nisabwatch.application.metals_service (preferences operations)
- tests.test_preferences (unit tests)

Files that this module USES:
- nisabwatch.adapters.persistence.file_store (JsonFileStore)
- nisabwatch.adapters.persistence.remote_store (RemotePreferencesStore)
- nisabwatch.domain.models (UserPreferences, NotificationCategory)
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Coroutine, Dict, List, Optional, Set

from nisabwatch.adapters.persistence.file_store import JsonFileStore
from nisabwatch.adapters.persistence.remote_store import RemotePreferencesStore
from nisabwatch.domain.errors import PersistenceError
from nisabwatch.domain.models import NotificationCategory, UserPreferences

log = logging.getLogger(__name__)


class LocalPreferencesStore:
    """user_id -> UserPreferences, kept in memory and mirrored to a JSON file."""

    def __init__(self, file_store: Optional[JsonFileStore] = None):
        self._file_store = file_store
        self._prefs: Dict[str, UserPreferences] = {}
        self._generations: Dict[str, int] = {}
        self._load_from_persistence()

    def _load_from_persistence(self) -> None:
        if self._file_store is None:
            return
        data = self._file_store.load()
        if not isinstance(data, dict):
            log.info("No persisted preferences found")
            return
        for user_id, raw in data.items():
            if isinstance(raw, dict):
                self._prefs[str(user_id)] = UserPreferences.from_json(raw)
        log.info("Loaded preferences for %d users", len(self._prefs))

    def get(self, user_id: str) -> Optional[UserPreferences]:
        return self._prefs.get(str(user_id))

    def put(self, user_id: str, prefs: UserPreferences) -> None:
        """Store preferences; a failed file write is logged and the in-memory copy kept."""
        self._prefs[str(user_id)] = prefs
        self._generations[str(user_id)] = self.generation(user_id) + 1
        if self._file_store is None:
            return
        try:
            self._file_store.save({uid: p.to_json() for uid, p in self._prefs.items()})
        except PersistenceError as e:
            log.error("Failed to persist preferences for user %s: %s", user_id, e)

    def user_ids(self) -> List[str]:
        return list(self._prefs)

    def generation(self, user_id: str) -> int:
        """Number of writes for the user since startup."""
        return self._generations.get(str(user_id), 0)


class PreferencesService:
    """Local-first preferences with best-effort background sync."""

    def __init__(
        self,
        local: LocalPreferencesStore,
        remote: Optional[RemotePreferencesStore] = None,
        defaults: Optional[UserPreferences] = None,
    ):
        self.local = local
        self.remote = remote
        self.defaults = defaults or UserPreferences()
        self._tasks: Set[asyncio.Task] = set()
        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._sync_errors: Dict[str, Optional[str]] = {}

    def user_ids(self) -> List[str]:
        return self.local.user_ids()

    def current(self, user_id: str) -> UserPreferences:
        """Local copy or defaults, without scheduling a reconcile."""
        return self.local.get(user_id) or self.defaults

    async def load(self, user_id: str) -> UserPreferences:
        """
        Return the local copy (or defaults) immediately.

        When a remote store is configured, a background reconcile is scheduled;
        its result shows up on the next load.
        """
        user_id = str(user_id)
        prefs = self.current(user_id)
        if self.remote is not None:
            self._schedule(user_id, self._reconcile(user_id, self.local.generation(user_id)))
        return prefs

    async def save(self, user_id: str, prefs: UserPreferences) -> UserPreferences:
        """Write locally now; push to the remote store in the background."""
        user_id = str(user_id)
        self.local.put(user_id, prefs)
        if self.remote is not None:
            self._schedule(user_id, self._push(user_id, prefs))
        return prefs

    async def update(self, user_id: str, **changes) -> UserPreferences:
        """
        Apply field changes to the user's preferences and save them.

        Raises:
            TypeError: If a change names an unknown preference field
        """
        prefs = replace(self.current(str(user_id)), **changes)
        return await self.save(user_id, prefs)

    async def mark_notified(self, user_id: str, category: NotificationCategory, when: datetime) -> UserPreferences:
        prefs = self.current(str(user_id)).with_notified(category, when)
        return await self.save(user_id, prefs)

    def sync_status(self, user_id: str) -> Optional[str]:
        """Last remote sync error for the user, or None when the last sync succeeded."""
        return self._sync_errors.get(str(user_id))

    async def drain(self) -> None:
        """Wait for every pending background sync."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -------- background sync --------

    def _schedule(self, user_id: str, work: Coroutine) -> None:
        task = asyncio.create_task(self._serialized(user_id, work))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _serialized(self, user_id: str, work: Coroutine) -> None:
        lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            try:
                await work
                self._sync_errors[user_id] = None
            except PersistenceError as e:
                log.warning("Remote preferences sync failed for user %s: %s", user_id, e)
                self._sync_errors[user_id] = str(e)
            except Exception as e:
                log.error("Unexpected error syncing preferences for user %s: %s", user_id, e, exc_info=True)
                self._sync_errors[user_id] = str(e)

    async def _reconcile(self, user_id: str, generation: int) -> None:
        remote = await asyncio.to_thread(self.remote.fetch, user_id)
        if self.local.generation(user_id) != generation:
            # A newer local write is queued for push and wins over this remote copy
            log.debug("Preferences for user %s changed during reconcile, keeping local copy", user_id)
            return
        if remote is not None:
            if remote != self.local.get(user_id):
                log.debug("Remote preferences for user %s replace the local copy", user_id)
                self.local.put(user_id, remote)
            return
        local = self.local.get(user_id)
        if local is not None:
            log.debug("No remote preferences for user %s, pushing local copy", user_id)
            await asyncio.to_thread(self.remote.push, user_id, local)

    async def _push(self, user_id: str, prefs: UserPreferences) -> None:
        await asyncio.to_thread(self.remote.push, user_id, prefs)

from __future__ import annotations

import logging
from datetime import datetime, timezone

from bangroute.services.bangs import SettingsSnapshot
from bangroute.services.store import (
    SYNC_CONFLICT,
    SYNC_ERROR,
    SYNC_STARTED,
    SYNC_SUCCESS,
    BangStateEvent,
    LocalBangStore,
)
from bangroute.services.transport import SettingsConflictError, UnauthorizedError


logger = logging.getLogger(__name__)

SYNC_STATUS_IDLE = "idle"
SYNC_STATUS_SYNCING = "syncing"
SYNC_STATUS_SUCCESS = "success"
SYNC_STATUS_ERROR = "error"
SYNC_STATUS_CONFLICT = "conflict"

CONFLICT_CHOICE_LOCAL = "local"
CONFLICT_CHOICE_SERVER = "server"

AUTH_REQUIRED_MESSAGE = "Authentication required"
GENERIC_SYNC_ERROR_MESSAGE = "Sync failed"

_STATUS_BY_EVENT = {
    SYNC_STARTED: SYNC_STATUS_SYNCING,
    SYNC_SUCCESS: SYNC_STATUS_SUCCESS,
    SYNC_ERROR: SYNC_STATUS_ERROR,
    SYNC_CONFLICT: SYNC_STATUS_CONFLICT,
}


class SyncCoordinator:
    """Moves the whole settings snapshot between the local store and a
    remote settings transport.

    Each public operation emits ``SYNC_STARTED`` and then exactly one of
    ``SYNC_SUCCESS``, ``SYNC_ERROR`` or ``SYNC_CONFLICT`` through the store.
    Failures are re-raised after the terminal event. Callers must not run
    two operations at once.
    """

    def __init__(self, store: LocalBangStore, transport):
        self.store = store
        self.transport = transport
        self.status = SYNC_STATUS_IDLE
        self.last_error: str | None = None
        self.server_snapshot: SettingsSnapshot | None = None

    def _emit(self, event_type: str, payload=None) -> None:
        self.status = _STATUS_BY_EVENT.get(event_type, self.status)
        self.store.emit(BangStateEvent(event_type, payload))

    def _started(self) -> None:
        self.last_error = None
        self._emit(SYNC_STARTED)

    def _succeeded(self) -> None:
        self._emit(SYNC_SUCCESS, {"timestamp": self.store.get_last_sync_time()})

    def _errored(self, exc: Exception) -> None:
        if isinstance(exc, UnauthorizedError):
            message = AUTH_REQUIRED_MESSAGE
        else:
            message = str(exc).strip() or GENERIC_SYNC_ERROR_MESSAGE
        self.last_error = message
        logger.warning("Settings sync failed: %s", message)
        self._emit(SYNC_ERROR, {"error": message})

    def _report_failure(self, exc: Exception) -> None:
        if not isinstance(exc, SettingsConflictError):
            self._errored(exc)
            return

        try:
            server_snapshot = self.transport.fetch_settings()
        except Exception as fetch_exc:
            self._errored(fetch_exc)
            raise
        exc.server_snapshot = server_snapshot
        self.server_snapshot = server_snapshot
        self._emit(SYNC_CONFLICT, {"server_settings": server_snapshot})

    def build_local_snapshot(self, user_id: str) -> SettingsSnapshot:
        return SettingsSnapshot(
            user_id=str(user_id),
            custom_bangs=tuple(self.store.get_custom_bangs()),
            default_bang=self.store.get_default_bang(),
            last_modified=datetime.now(timezone.utc),
        )

    def _apply_snapshot(self, snapshot: SettingsSnapshot) -> None:
        self.store.replace_custom_bangs(list(snapshot.custom_bangs))
        if snapshot.default_bang is not None:
            self.store.set_default_bang(snapshot.default_bang)
        else:
            self.store.clear_default_bang()
        self.store.set_last_sync_time(snapshot.last_modified)

    def _push(self, user_id: str, force: bool = False) -> SettingsSnapshot:
        stored = self.transport.push_settings(
            self.build_local_snapshot(user_id), force=force
        )
        self.store.set_last_sync_time(stored.last_modified)
        return stored

    def push_to_cloud(self, user_id: str) -> SettingsSnapshot:
        self._started()
        try:
            stored = self._push(user_id)
        except Exception as exc:
            self._report_failure(exc)
            raise
        self._succeeded()
        return stored

    def pull_from_cloud(self) -> SettingsSnapshot:
        self._started()
        try:
            snapshot = self.transport.fetch_settings()
            self._apply_snapshot(snapshot)
        except Exception as exc:
            self._report_failure(exc)
            raise
        self._succeeded()
        return snapshot

    def full_sync(self, user_id: str) -> SettingsSnapshot:
        """Pull when the server is newer than our last sync, push otherwise."""
        self._started()
        try:
            remote = self.transport.fetch_settings()
            last_sync = self.store.get_last_sync_time()
            if last_sync is None or remote.last_modified > last_sync:
                self._apply_snapshot(remote)
                result = remote
            else:
                result = self._push(user_id)
        except Exception as exc:
            self._report_failure(exc)
            raise
        self._succeeded()
        return result

    def resolve_conflict(
        self,
        choice: str,
        server_snapshot: SettingsSnapshot | None = None,
        user_id: str | None = None,
    ) -> SettingsSnapshot:
        if choice == CONFLICT_CHOICE_SERVER:
            server_snapshot = server_snapshot or self.server_snapshot
            if server_snapshot is None:
                raise ValueError("No server settings to resolve the conflict with")
        elif choice == CONFLICT_CHOICE_LOCAL:
            if not user_id:
                raise ValueError("User not authenticated")
        else:
            raise ValueError(f"Unknown conflict choice: {choice!r}")

        self._started()
        try:
            if choice == CONFLICT_CHOICE_SERVER:
                self._apply_snapshot(server_snapshot)
                result = server_snapshot
            else:
                result = self._push(user_id, force=True)
        except Exception as exc:
            self._report_failure(exc)
            raise
        self.server_snapshot = None
        self._succeeded()
        return result

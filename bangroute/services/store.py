from __future__ import annotations

import dataclasses
import json
import locale
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from dateutil import parser as dt_parser

from bangroute.services.bangs import (
    DEFAULT_BANG,
    Bang,
    BangCatalog,
    bang_to_dict,
    is_bang,
    is_complete_bang,
    load_builtin_bangs,
    parse_bang,
)
from bangroute.services.storage import StorageBackend


logger = logging.getLogger(__name__)

CUSTOM_BANGS_KEY = "custom-bangs"
DEFAULT_BANG_KEY = "default-bang"
LAST_SYNC_KEY = "last-sync"

EXPORT_FORMAT_VERSION = "1.0"

CUSTOM_BANGS_CHANGED = "CUSTOM_BANGS_CHANGED"
DEFAULT_BANG_CHANGED = "DEFAULT_BANG_CHANGED"
SETTINGS_IMPORTED = "SETTINGS_IMPORTED"
SYNC_STARTED = "SYNC_STARTED"
SYNC_SUCCESS = "SYNC_SUCCESS"
SYNC_ERROR = "SYNC_ERROR"
SYNC_CONFLICT = "SYNC_CONFLICT"

_UNLOADED = object()
# Bang field names and their compact wire-form keys.
_EDITABLE_FIELDS = {
    "trigger": "trigger",
    "name": "name",
    "url": "url",
    "domain": "domain",
    "aliases": "aliases",
    "t": "trigger",
    "s": "name",
    "u": "url",
    "d": "domain",
    "ts": "aliases",
}


@dataclass(frozen=True)
class BangStateEvent:
    type: str
    payload: Any = None


@dataclass(frozen=True)
class ImportResult:
    success: bool
    message: str


BangStateListener = Callable[[BangStateEvent], None]


class LocalBangStore:
    """Device-local custom bangs, default bang and last-sync time.

    Every mutation is written through to ``storage`` before listeners are
    notified. Getters hand out copies; the cached lists are never shared.
    """

    def __init__(
        self,
        storage: StorageBackend,
        builtin_loader: Callable[[], list[Bang]] = load_builtin_bangs,
    ):
        self.storage = storage
        self._builtin_loader = builtin_loader
        self._listeners: list[BangStateListener] = []
        self._custom_bangs: list[Bang] | None = None
        self._default_bang: Any = _UNLOADED
        self._catalog: BangCatalog | None = None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: BangStateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: BangStateEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Bang state listener failed on %s", event.type)

    # ------------------------------------------------------------------
    # Custom bangs
    # ------------------------------------------------------------------

    def get_custom_bangs(self) -> list[Bang]:
        if self._custom_bangs is None:
            self._custom_bangs = self._read_custom_bangs()
        return list(self._custom_bangs)

    def _read_custom_bangs(self) -> list[Bang]:
        raw = self.storage.get_item(CUSTOM_BANGS_KEY)
        if not raw:
            return []
        try:
            rows = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored custom bangs are not valid JSON, starting empty")
            return []
        if not isinstance(rows, list):
            return []

        bangs = []
        for row in rows:
            if not is_complete_bang(row):
                logger.warning("Skipping malformed stored custom bang: %r", row)
                continue
            bangs.append(Bang.from_dict(row, custom=True))
        return bangs

    def _save_custom_bangs(self, bangs: list[Bang]) -> None:
        self._custom_bangs = list(bangs)
        self._catalog = None
        self.storage.set_item(
            CUSTOM_BANGS_KEY, json.dumps([bang.to_dict() for bang in bangs])
        )
        self.emit(BangStateEvent(CUSTOM_BANGS_CHANGED, list(bangs)))

    def add_custom_bang(self, bang: Bang) -> None:
        if not is_complete_bang(bang.to_dict()):
            raise ValueError(f"custom bang {bang.trigger!r} has an empty field")
        bang = bang.as_custom()
        bangs = self.get_custom_bangs()
        for index, existing in enumerate(bangs):
            if existing.trigger == bang.trigger:
                bangs[index] = bang
                break
        else:
            bangs.append(bang)
        self._save_custom_bangs(bangs)

    def remove_custom_bang(self, trigger: str) -> None:
        bangs = [bang for bang in self.get_custom_bangs() if bang.trigger != trigger]
        self._save_custom_bangs(bangs)

    def update_custom_bang(self, trigger: str, changes: dict) -> bool:
        bangs = self.get_custom_bangs()
        for index, existing in enumerate(bangs):
            if existing.trigger == trigger:
                break
        else:
            return False

        changes = {
            _EDITABLE_FIELDS[key]: value
            for key, value in changes.items()
            if key in _EDITABLE_FIELDS
        }
        if "aliases" in changes:
            changes["aliases"] = tuple(changes["aliases"] or ())
        updated = dataclasses.replace(existing, **changes, custom=True)
        if not is_complete_bang(updated.to_dict()):
            return False
        bangs[index] = updated
        bangs.sort(key=lambda bang: locale.strxfrm(bang.trigger))
        self._save_custom_bangs(bangs)
        return True

    def replace_custom_bangs(self, bangs: list[Bang]) -> None:
        self._save_custom_bangs([bang.as_custom() for bang in bangs])

    # ------------------------------------------------------------------
    # Default bang
    # ------------------------------------------------------------------

    def get_default_bang(self) -> Bang | None:
        if self._default_bang is _UNLOADED:
            self._default_bang = self._read_default_bang()
        return self._default_bang

    def _read_default_bang(self) -> Bang | None:
        raw = self.storage.get_item(DEFAULT_BANG_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return parse_bang(data)

    def get_default_bang_or_store(self) -> Bang:
        bang = self.get_default_bang()
        if bang is not None:
            return bang
        self.set_default_bang(DEFAULT_BANG)
        return DEFAULT_BANG

    def set_default_bang(self, bang: Bang) -> None:
        self._default_bang = bang
        self.storage.set_item(DEFAULT_BANG_KEY, json.dumps(bang.to_dict()))
        self.emit(BangStateEvent(DEFAULT_BANG_CHANGED, bang))

    def clear_default_bang(self) -> None:
        self._default_bang = None
        self.storage.remove_item(DEFAULT_BANG_KEY)
        self.emit(BangStateEvent(DEFAULT_BANG_CHANGED, None))

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def _get_catalog(self) -> BangCatalog:
        if self._catalog is None:
            self._catalog = BangCatalog(self.get_custom_bangs(), self._builtin_loader())
        return self._catalog

    def get_all_bangs(self) -> list[Bang]:
        return self._get_catalog().all_bangs()

    def find_bang(self, trigger: str) -> Bang | None:
        return self._get_catalog().find_by_trigger(trigger)

    # ------------------------------------------------------------------
    # Sync bookkeeping
    # ------------------------------------------------------------------

    def get_last_sync_time(self) -> datetime | None:
        raw = self.storage.get_item(LAST_SYNC_KEY)
        if not raw:
            return None
        try:
            value = dt_parser.isoparse(raw)
        except (ValueError, OverflowError):
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    def set_last_sync_time(self, value: datetime) -> None:
        self.storage.set_item(LAST_SYNC_KEY, value.isoformat())

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_settings(self) -> dict:
        return {
            "customBangs": [bang.to_dict() for bang in self.get_custom_bangs()],
            "defaultBang": bang_to_dict(self.get_default_bang()),
            "exportedAt": datetime.now(timezone.utc).isoformat(),
            "version": EXPORT_FORMAT_VERSION,
        }

    def import_settings(self, data) -> ImportResult:
        if not isinstance(data, dict):
            return ImportResult(False, "Invalid settings data format")

        custom_rows = data.get("customBangs")
        if not isinstance(custom_rows, list):
            return ImportResult(False, "Invalid custom bangs data")
        for row in custom_rows:
            if not is_complete_bang(row):
                return ImportResult(False, "Invalid custom bang structure")

        default_row = data.get("defaultBang")
        if default_row is not None and not is_bang(default_row):
            return ImportResult(False, "Invalid default bang structure")

        custom_bangs = [Bang.from_dict(row, custom=True) for row in custom_rows]
        self._custom_bangs = custom_bangs
        self._catalog = None
        self.storage.set_item(
            CUSTOM_BANGS_KEY, json.dumps([bang.to_dict() for bang in custom_bangs])
        )
        if default_row is not None:
            self._default_bang = Bang.from_dict(default_row)
            self.storage.set_item(DEFAULT_BANG_KEY, json.dumps(default_row))

        self.emit(BangStateEvent(SETTINGS_IMPORTED, data))
        return ImportResult(
            True,
            f"Successfully imported {len(custom_bangs)} custom bangs"
            + (" and default search engine" if default_row is not None else ""),
        )

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def clear_all_data(self) -> None:
        self._custom_bangs = []
        self._default_bang = None
        self._catalog = None
        self.storage.remove_item(CUSTOM_BANGS_KEY)
        self.storage.remove_item(DEFAULT_BANG_KEY)
        self.storage.remove_item(LAST_SYNC_KEY)
        self.emit(BangStateEvent(CUSTOM_BANGS_CHANGED, []))
        self.emit(BangStateEvent(DEFAULT_BANG_CHANGED, None))

    def get_state(self) -> dict:
        return {
            "custom_bangs": self.get_custom_bangs(),
            "default_bang": self.get_default_bang(),
            "last_sync": self.get_last_sync_time(),
        }

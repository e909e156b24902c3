from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from dateutil import parser as dt_parser


BUILTIN_BANGS_PATH = Path(__file__).resolve().parent.parent / "data" / "bangs.json"

PLACEHOLDERS = ("%s", "{{{s}}}")


@dataclass(frozen=True)
class Bang:
    trigger: str
    name: str
    url: str
    domain: str
    aliases: tuple[str, ...] = field(default_factory=tuple)
    custom: bool = False

    @classmethod
    def from_dict(cls, data: dict, custom: bool | None = None) -> "Bang":
        if custom is None:
            custom = data.get("c") is True
        return cls(
            trigger=data["t"],
            name=data["s"],
            url=data["u"],
            domain=data["d"],
            aliases=tuple(data.get("ts") or ()),
            custom=custom,
        )

    def to_dict(self) -> dict:
        payload = {"t": self.trigger, "s": self.name, "u": self.url, "d": self.domain}
        if self.aliases:
            payload["ts"] = list(self.aliases)
        if self.custom:
            payload["c"] = True
        return payload

    def as_custom(self) -> "Bang":
        if self.custom:
            return self
        return Bang(
            self.trigger, self.name, self.url, self.domain, self.aliases, custom=True
        )

    def matches_trigger(self, trigger: str) -> bool:
        return self.trigger == trigger or trigger in self.aliases


def is_bang(value) -> bool:
    if not isinstance(value, dict):
        return False
    for key in ("t", "s", "u", "d"):
        if not isinstance(value.get(key), str):
            return False
    aliases = value.get("ts")
    if aliases is not None:
        if not isinstance(aliases, list):
            return False
        if not all(isinstance(alias, str) for alias in aliases):
            return False
    if "c" in value and value["c"] is not True:
        return False
    return True


def is_complete_bang(value) -> bool:
    if not is_bang(value):
        return False
    return all(value[key].strip() for key in ("t", "s", "u", "d"))


def parse_bang(value, custom: bool | None = None) -> Bang | None:
    if not is_bang(value):
        return None
    return Bang.from_dict(value, custom=custom)


def bang_to_dict(bang: Bang | None) -> dict | None:
    if bang is None:
        return None
    return bang.to_dict()


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = dt_parser.isoparse(value.strip())
        except (ValueError, OverflowError) as exc:
            raise ValueError(f"invalid lastModified: {value!r}") from exc
    else:
        raise ValueError("lastModified is required")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class SettingsSnapshot:
    """A user's full bang settings; synced as one unit under one timestamp."""

    user_id: str
    custom_bangs: tuple[Bang, ...]
    default_bang: Bang | None
    last_modified: datetime

    @classmethod
    def from_dict(cls, data) -> "SettingsSnapshot":
        if not isinstance(data, dict):
            raise ValueError("settings must be an object")

        user_id = data.get("userId")
        if user_id is None:
            user_id = ""
        if not isinstance(user_id, (str, int)):
            raise ValueError("userId must be a string")

        rows = data.get("customBangs")
        if rows is None:
            rows = []
        if not isinstance(rows, list):
            raise ValueError("customBangs must be a list")
        for row in rows:
            if not is_complete_bang(row):
                raise ValueError("invalid custom bang structure")

        default_row = data.get("defaultBang")
        if default_row is not None and not is_bang(default_row):
            raise ValueError("invalid default bang structure")

        return cls(
            user_id=str(user_id),
            custom_bangs=tuple(Bang.from_dict(row, custom=True) for row in rows),
            default_bang=Bang.from_dict(default_row) if default_row else None,
            last_modified=_parse_timestamp(data.get("lastModified")),
        )

    def to_dict(self) -> dict:
        payload = {
            "userId": self.user_id,
            "customBangs": [bang.to_dict() for bang in self.custom_bangs],
            "lastModified": self.last_modified.isoformat(),
        }
        if self.default_bang is not None:
            payload["defaultBang"] = self.default_bang.to_dict()
        return payload


DEFAULT_BANG = Bang(
    trigger="g",
    name="Google",
    url="https://www.google.com/search?q={{{s}}}",
    domain="www.google.com",
)


@lru_cache(maxsize=None)
def _read_builtin_bangs(path: str) -> tuple[Bang, ...]:
    with open(path, "r", encoding="utf-8") as f:
        rows = json.load(f)
    return tuple(Bang.from_dict(row, custom=False) for row in rows if is_bang(row))


def load_builtin_bangs(path: Path | None = None) -> list[Bang]:
    return list(_read_builtin_bangs(str(path or BUILTIN_BANGS_PATH)))


class BangCatalog:
    """Custom bangs layered over the shipped built-ins.

    Custom bangs come first so a user override shadows a built-in that
    shares its trigger.
    """

    def __init__(self, custom_bangs: list[Bang], builtin_bangs: list[Bang]):
        self._bangs = [*custom_bangs, *builtin_bangs]

    def all_bangs(self) -> list[Bang]:
        return list(self._bangs)

    def find_by_trigger(self, trigger: str) -> Bang | None:
        for bang in self._bangs:
            if bang.matches_trigger(trigger):
                return bang
        return None

    def __len__(self) -> int:
        return len(self._bangs)

"""Server-side persistence of per-user settings snapshots."""
from __future__ import annotations

from datetime import timezone

from bangroute.extensions import db
from bangroute.models import UserSettings, as_utc, utcnow
from bangroute.services.bangs import SettingsSnapshot, bang_to_dict


class StaleSettingsError(Exception):
    """The stored snapshot is newer than the one being written."""

    def __init__(self, stored: UserSettings):
        super().__init__("stored settings are newer")
        self.stored = stored


def get_or_create_settings(user_id: int) -> UserSettings:
    settings = UserSettings.query.filter_by(user_id=user_id).first()
    if settings is None:
        settings = UserSettings(
            user_id=user_id,
            custom_bangs=[],
            default_bang=None,
            last_modified=utcnow(),
        )
        db.session.add(settings)
        db.session.commit()
    return settings


def _server_time_is_newer(server_time, client_time) -> bool:
    # Equal timestamps are not a conflict.
    return as_utc(server_time) > client_time


def save_settings(
    user_id: int, snapshot: SettingsSnapshot, force: bool = False
) -> UserSettings:
    settings = UserSettings.query.filter_by(user_id=user_id).first()
    if settings is None:
        settings = UserSettings(user_id=user_id)
        db.session.add(settings)
    elif not force and _server_time_is_newer(
        settings.last_modified, snapshot.last_modified
    ):
        raise StaleSettingsError(settings)

    settings.custom_bangs = [bang.to_dict() for bang in snapshot.custom_bangs]
    settings.default_bang = bang_to_dict(snapshot.default_bang)
    # SQLite keeps wall-clock time only, so store the instant in UTC.
    settings.last_modified = snapshot.last_modified.astimezone(timezone.utc)
    db.session.commit()
    return settings

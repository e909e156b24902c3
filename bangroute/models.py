from datetime import datetime, timezone

from werkzeug.security import check_password_hash, generate_password_hash

from bangroute.extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back out.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    settings = db.relationship(
        "UserSettings", backref="user", uselist=False, lazy=True
    )

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def as_dict(self):
        return {
            "id": str(self.id),
            "username": self.username,
            "created_at": as_utc(self.created_at).isoformat(),
        }


class UserSettings(db.Model):
    __tablename__ = "user_settings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True
    )
    custom_bangs = db.Column(db.JSON, nullable=False, default=list)
    default_bang = db.Column(db.JSON, nullable=True)
    last_modified = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow
    )

    def as_dict(self):
        payload = {
            "userId": str(self.user_id),
            "customBangs": list(self.custom_bangs or []),
            "lastModified": as_utc(self.last_modified).isoformat(),
        }
        if self.default_bang is not None:
            payload["defaultBang"] = self.default_bang
        return payload

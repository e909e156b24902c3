from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import wraps

from flask import current_app, g, jsonify, request
from itsdangerous import BadData, URLSafeTimedSerializer

from bangroute.extensions import db
from bangroute.models import User


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=secret_key, salt="bangroute-api-token")


def issue_api_token(secret_key: str, user_id: int, ttl_seconds: int) -> tuple[str, datetime]:
    token = _serializer(secret_key).dumps({"user_id": user_id})
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
    return token, expires_at


def verify_api_token(secret_key: str, token: str, max_age: int) -> int | None:
    try:
        payload = _serializer(secret_key).loads(token, max_age=max_age)
    except BadData:
        return None
    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    if not isinstance(user_id, int):
        return None
    return user_id


def _user_from_bearer_token():
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        return None
    user_id = verify_api_token(
        current_app.config["SECRET_KEY"],
        token,
        max_age=current_app.config["TOKEN_TTL_SECONDS"],
    )
    if user_id is None:
        return None
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user


def api_auth_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        user = _user_from_bearer_token()
        if not user:
            return jsonify({"error": "authentication required"}), 401
        g.api_user = user
        return func(*args, **kwargs)

    return wrapped

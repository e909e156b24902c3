from __future__ import annotations

from flask import current_app, g, jsonify, request

from bangroute.api import api_bp
from bangroute.models import User
from bangroute.services.bangs import SettingsSnapshot
from bangroute.services.security import api_auth_required, issue_api_token
from bangroute.services.settings import (
    StaleSettingsError,
    get_or_create_settings,
    save_settings,
)


def _to_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "BangRoute"})


@api_bp.route("/auth/token", methods=["POST"])
def create_token_with_credentials():
    payload = request.get_json(silent=True) or {}
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""

    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        return jsonify({"error": "invalid credentials"}), 401

    token, expires_at = issue_api_token(
        current_app.config["SECRET_KEY"],
        user.id,
        current_app.config["TOKEN_TTL_SECONDS"],
    )
    return jsonify(
        {
            "token": token,
            "user_id": str(user.id),
            "expires_at": expires_at.isoformat(),
        }
    )


@api_bp.route("/user/current", methods=["GET"])
@api_auth_required
def current_user_api():
    return jsonify(g.api_user.as_dict())


@api_bp.route("/settings", methods=["GET"])
@api_auth_required
def settings_pull():
    settings = get_or_create_settings(g.api_user.id)
    return jsonify(settings.as_dict())


@api_bp.route("/settings", methods=["PUT"])
@api_auth_required
def settings_push():
    user = g.api_user
    payload = request.get_json(silent=True)
    try:
        snapshot = SettingsSnapshot.from_dict(payload)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    force = _to_bool(request.args.get("force"), default=False)
    try:
        settings = save_settings(user.id, snapshot, force=force)
    except StaleSettingsError:
        current_app.logger.info(
            "Rejected stale settings push for user %s (client lastModified %s)",
            user.id,
            snapshot.last_modified.isoformat(),
        )
        return "Conflict", 409
    return jsonify(settings.as_dict())

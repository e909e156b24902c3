from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx
from dateutil import parser as dt_parser

from bangroute.services.bangs import SettingsSnapshot


SETTINGS_PATH = "/api/v1/settings"
TOKEN_PATH = "/api/v1/auth/token"
CURRENT_USER_PATH = "/api/v1/user/current"
SESSION_KEY = "auth-session"

DEFAULT_HEADERS = {
    "User-Agent": "BangRoute/1.0 (settings sync)",
    "Accept": "application/json",
}


class SettingsTransportError(Exception):
    """Generic failure talking to the remote settings service."""


class UnauthorizedError(SettingsTransportError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class SettingsConflictError(SettingsTransportError):
    def __init__(self, message: str = "Conflict"):
        super().__init__(message)
        # Filled in with the current remote state once it has been fetched.
        self.server_snapshot: SettingsSnapshot | None = None


def _normalize_error(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__


@dataclass
class ClientSession:
    user_id: str
    token: str
    expires_at: datetime | None = None

    def is_valid(self, now: datetime | None = None) -> bool:
        if not self.user_id or not self.token:
            return False
        if self.expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return self.expires_at > now

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "token": self.token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ClientSession":
        expires_at = None
        if data.get("expires_at"):
            expires_at = dt_parser.isoparse(data["expires_at"])
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
        return cls(
            user_id=str(data["user_id"]),
            token=str(data["token"]),
            expires_at=expires_at,
        )


def load_client_session(storage) -> ClientSession | None:
    raw = storage.get_item(SESSION_KEY)
    if not raw:
        return None
    try:
        return ClientSession.from_dict(json.loads(raw))
    except (ValueError, KeyError, TypeError):
        return None


def save_client_session(storage, session: ClientSession) -> None:
    storage.set_item(SESSION_KEY, json.dumps(session.to_dict()))


def clear_client_session(storage) -> None:
    storage.remove_item(SESSION_KEY)


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code == 401:
        raise UnauthorizedError()
    if response.status_code == 409:
        raise SettingsConflictError(response.text.strip() or "Conflict")
    if response.status_code >= 400:
        raise SettingsTransportError(
            f"Request failed: {response.status_code} {response.reason_phrase}"
        )


def _json_body(response: httpx.Response):
    try:
        return response.json()
    except ValueError as exc:
        raise SettingsTransportError("Invalid JSON in settings response") from exc


class HttpSettingsTransport:
    """Talks to ``/api/v1/settings`` on a BangRoute server."""

    def __init__(
        self,
        base_url: str,
        session: ClientSession | None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=DEFAULT_HEADERS,
            transport=self._transport,
        )

    def _auth_headers(self) -> dict:
        if self.session is None or not self.session.is_valid():
            raise UnauthorizedError()
        return {"Authorization": f"Bearer {self.session.token}"}

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = self._auth_headers()
        try:
            with self._client() as client:
                response = client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise SettingsTransportError(_normalize_error(exc)) from exc
        _raise_for_status(response)
        return response

    def _snapshot(self, response: httpx.Response) -> SettingsSnapshot:
        try:
            return SettingsSnapshot.from_dict(_json_body(response))
        except ValueError as exc:
            raise SettingsTransportError(f"Invalid settings response: {exc}") from exc

    def fetch_settings(self) -> SettingsSnapshot:
        return self._snapshot(self._request("GET", SETTINGS_PATH))

    def push_settings(
        self, snapshot: SettingsSnapshot, force: bool = False
    ) -> SettingsSnapshot:
        params = {"force": "1"} if force else None
        response = self._request(
            "PUT", SETTINGS_PATH, json=snapshot.to_dict(), params=params
        )
        return self._snapshot(response)

    def fetch_current_user(self) -> dict:
        return _json_body(self._request("GET", CURRENT_USER_PATH))


def request_session(
    base_url: str,
    username: str,
    password: str,
    timeout: float = 10.0,
    transport: httpx.BaseTransport | None = None,
) -> ClientSession:
    try:
        with httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=DEFAULT_HEADERS,
            transport=transport,
        ) as client:
            response = client.post(
                TOKEN_PATH, json={"username": username, "password": password}
            )
    except httpx.HTTPError as exc:
        raise SettingsTransportError(_normalize_error(exc)) from exc
    _raise_for_status(response)

    payload = _json_body(response)
    try:
        return ClientSession.from_dict(payload)
    except (ValueError, KeyError, TypeError) as exc:
        raise SettingsTransportError("Invalid token response") from exc

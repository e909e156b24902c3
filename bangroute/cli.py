from __future__ import annotations

import json
from urllib.parse import urlparse

import click
from flask import current_app
from flask.cli import AppGroup

from bangroute.extensions import db
from bangroute.models import User
from bangroute.services.bangs import Bang
from bangroute.services.redirect import BangResolver
from bangroute.services.search import rank_bangs
from bangroute.services.sync import (
    CONFLICT_CHOICE_LOCAL,
    CONFLICT_CHOICE_SERVER,
    SyncCoordinator,
)
from bangroute.services.transport import (
    HttpSettingsTransport,
    SettingsConflictError,
    SettingsTransportError,
    clear_client_session,
    load_client_session,
    request_session,
    save_client_session,
)


bangs_cli = AppGroup("bangs", help="Manage the local bang store.")
sync_cli = AppGroup("sync", help="Synchronize settings with the settings server.")
bangs_cli.add_command(sync_cli)


def register_commands(app):
    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized BangRoute database.")

    @app.cli.command("create-user")
    @click.argument("username")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    def create_user_command(username, password):
        username = username.strip()
        if not username:
            raise click.ClickException("username is required")
        if User.query.filter_by(username=username).first():
            raise click.ClickException(f"user {username!r} already exists")
        user = User(username=username, is_active=True)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        print(f"Created user {username}.")


def _store():
    return current_app.extensions["bang_store"]


def _describe(bang: Bang) -> str:
    line = f"!{bang.trigger:<10} {bang.name}  {bang.url}"
    if bang.aliases:
        line += f"  (aliases: {', '.join(bang.aliases)})"
    return line


def _normalize_trigger(value: str) -> str:
    return value.strip().lstrip("!").lower()


def _sync_coordinator():
    store = _store()
    session = load_client_session(store.storage)
    transport = HttpSettingsTransport(
        current_app.config["SETTINGS_API_URL"],
        session,
        timeout=current_app.config["SYNC_TIMEOUT"],
        transport=current_app.config.get("SETTINGS_HTTP_TRANSPORT"),
    )
    return SyncCoordinator(store, transport), session


def _require_user_id(session) -> str:
    if session is None or not session.is_valid():
        raise click.ClickException("Not logged in. Run `flask bangs login` first.")
    return session.user_id


def _run_sync(action):
    try:
        return action()
    except SettingsConflictError:
        raise click.ClickException(
            "Server settings are newer than the local copy. "
            "Run `flask bangs sync resolve local` or `flask bangs sync resolve server`."
        )
    except SettingsTransportError as exc:
        current_app.logger.warning("Sync command failed: %s", exc)
        raise click.ClickException(str(exc))


@bangs_cli.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include built-in bangs.")
def list_bangs_command(show_all):
    store = _store()
    default_bang = store.get_default_bang()
    if default_bang:
        print(f"Default: {default_bang.name} (!{default_bang.trigger})")
    else:
        print("Default: not set")

    bangs = store.get_all_bangs() if show_all else store.get_custom_bangs()
    if not bangs:
        print("No custom bangs.")
    for bang in bangs:
        print(_describe(bang))


@bangs_cli.command("search")
@click.argument("query")
@click.option("--limit", type=int, default=None)
def search_bangs_command(query, limit):
    limit = limit or current_app.config["SUGGEST_LIMIT"]
    for bang in rank_bangs(_store().get_all_bangs(), query, limit=max(1, limit)):
        print(_describe(bang))


@bangs_cli.command("add")
@click.argument("trigger")
@click.argument("name")
@click.argument("url")
@click.option("--alias", "aliases", multiple=True, help="Extra trigger, repeatable.")
@click.option("--domain", default=None, help="Defaults to the URL host.")
def add_bang_command(trigger, name, url, aliases, domain):
    trigger = _normalize_trigger(trigger)
    domain = (domain or urlparse(url).netloc).strip()
    bang = Bang(
        trigger=trigger,
        name=name.strip(),
        url=url.strip(),
        domain=domain,
        aliases=tuple(_normalize_trigger(alias) for alias in aliases if alias.strip()),
        custom=True,
    )
    try:
        _store().add_custom_bang(bang)
    except ValueError as exc:
        raise click.ClickException(str(exc))
    print(f"Saved !{trigger}.")


@bangs_cli.command("remove")
@click.argument("trigger")
def remove_bang_command(trigger):
    trigger = _normalize_trigger(trigger)
    _store().remove_custom_bang(trigger)
    print(f"Removed !{trigger}.")


@bangs_cli.command("default")
@click.argument("trigger", required=False)
@click.option("--clear", is_flag=True)
def default_bang_command(trigger, clear):
    store = _store()
    if clear:
        store.clear_default_bang()
        print("Default search engine cleared.")
        return
    if trigger:
        bang = store.find_bang(_normalize_trigger(trigger))
        if bang is None:
            raise click.ClickException(f"unknown bang !{_normalize_trigger(trigger)}")
        store.set_default_bang(bang)

    bang = store.get_default_bang_or_store()
    print(f"Default: {bang.name} (!{bang.trigger})")


@bangs_cli.command("resolve")
@click.argument("query", nargs=-1, required=True)
def resolve_command(query):
    target = BangResolver(_store()).resolve(" ".join(query))
    if target is None:
        raise click.ClickException("empty query")
    print(target)


@bangs_cli.command("export")
@click.argument("file", type=click.File("w", encoding="utf-8"))
def export_command(file):
    json.dump(_store().export_settings(), file, indent=2)
    file.write("\n")


@bangs_cli.command("import")
@click.argument("file", type=click.File("r", encoding="utf-8"))
def import_command(file):
    try:
        data = json.load(file)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"not a JSON file: {exc}")
    result = _store().import_settings(data)
    if not result.success:
        raise click.ClickException(result.message)
    print(result.message)


@bangs_cli.command("login")
@click.option("--username", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
def login_command(username, password):
    try:
        session = request_session(
            current_app.config["SETTINGS_API_URL"],
            username,
            password,
            timeout=current_app.config["SYNC_TIMEOUT"],
            transport=current_app.config.get("SETTINGS_HTTP_TRANSPORT"),
        )
    except SettingsTransportError as exc:
        raise click.ClickException(f"Login failed: {exc}")
    save_client_session(_store().storage, session)
    print(f"Logged in as user {session.user_id}.")


@bangs_cli.command("logout")
def logout_command():
    clear_client_session(_store().storage)
    print("Logged out.")


@sync_cli.command("push")
def sync_push_command():
    coordinator, session = _sync_coordinator()
    user_id = _require_user_id(session)
    stored = _run_sync(lambda: coordinator.push_to_cloud(user_id))
    print(f"Pushed settings ({stored.last_modified.isoformat()}).")


@sync_cli.command("pull")
def sync_pull_command():
    coordinator, _session = _sync_coordinator()
    snapshot = _run_sync(coordinator.pull_from_cloud)
    print(
        f"Pulled {len(snapshot.custom_bangs)} custom bangs "
        f"({snapshot.last_modified.isoformat()})."
    )


@sync_cli.command("full")
def sync_full_command():
    coordinator, session = _sync_coordinator()
    user_id = _require_user_id(session)
    snapshot = _run_sync(lambda: coordinator.full_sync(user_id))
    print(f"Settings in sync ({snapshot.last_modified.isoformat()}).")


@sync_cli.command("resolve")
@click.argument(
    "choice", type=click.Choice([CONFLICT_CHOICE_LOCAL, CONFLICT_CHOICE_SERVER])
)
def sync_resolve_command(choice):
    coordinator, session = _sync_coordinator()
    if choice == CONFLICT_CHOICE_LOCAL:
        user_id = _require_user_id(session)
        _run_sync(lambda: coordinator.resolve_conflict(choice, user_id=user_id))
        print("Local settings written to the server.")
        return

    server_snapshot = _run_sync(coordinator.transport.fetch_settings)
    _run_sync(lambda: coordinator.resolve_conflict(choice, server_snapshot))
    print("Server settings applied locally.")

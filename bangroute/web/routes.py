from __future__ import annotations

from flask import current_app, jsonify, redirect, render_template, request

from bangroute.services.redirect import BangResolver
from bangroute.services.search import rank_bangs
from bangroute.web import web_bp


def _bang_store():
    return current_app.extensions["bang_store"]


@web_bp.route("/")
def index():
    store = _bang_store()
    target = BangResolver(store).resolve(request.args.get("q"))
    if target:
        return redirect(target, code=302)

    return render_template(
        "landing.html",
        default_bang=store.get_default_bang(),
        custom_bangs=store.get_custom_bangs(),
    )


@web_bp.route("/bangs/suggest")
def suggest_bangs():
    query = (request.args.get("q") or "").strip()
    limit = request.args.get("limit", type=int) or current_app.config["SUGGEST_LIMIT"]
    ranked = rank_bangs(_bang_store().get_all_bangs(), query, limit=max(1, limit))
    return jsonify({"items": [bang.to_dict() for bang in ranked]})

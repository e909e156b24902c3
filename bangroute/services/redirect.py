from __future__ import annotations

import re
from urllib.parse import quote

from bangroute.services.bangs import PLACEHOLDERS, Bang


BANG_TOKEN_RE = re.compile(r"!(\S+)")
BANG_STRIP_RE = re.compile(r"!\S+\s*")

# encodeURIComponent's unreserved marks, plus "/" so path-like terms survive.
_SAFE_CHARS = "/!*'()"


def encode_query(query: str) -> str:
    # Lone surrogates from undecodable argv bytes are sent as "?".
    return quote(query.encode("utf-8", "replace"), safe=_SAFE_CHARS)


def has_placeholder(template: str) -> bool:
    return any(placeholder in template for placeholder in PLACEHOLDERS)


def fill_template(template: str, query: str) -> str:
    for placeholder in PLACEHOLDERS:
        if placeholder in template:
            return template.replace(placeholder, encode_query(query), 1)
    return template


def extract_bang(query: str) -> str | None:
    match = BANG_TOKEN_RE.search(query)
    if not match:
        return None
    return match.group(1).lower()


def strip_first_bang(query: str) -> str:
    return BANG_STRIP_RE.sub("", query, count=1).strip()


def build_bang_url(bang: Bang, query: str) -> str:
    if not has_placeholder(bang.url):
        return bang.url
    if not query:
        return f"https://{bang.domain}"
    return fill_template(bang.url, query)


class BangResolver:
    """Turns a free-text query into a redirect target using a bang store."""

    def __init__(self, store):
        self.store = store

    def resolve(self, query: str | None) -> str | None:
        query = (query or "").strip()
        if not query:
            return None

        candidate = extract_bang(query)
        if candidate:
            bang = self.store.find_bang(candidate)
            if bang is not None:
                return build_bang_url(bang, strip_first_bang(query))

        # Unknown or missing bang: the whole query, token included, goes to
        # the default engine.
        default_bang = self.store.get_default_bang_or_store()
        return build_bang_url(default_bang, query)

from __future__ import annotations

import math

from rapidfuzz.distance import Levenshtein

from bangroute.services.bangs import Bang


EXACT_TRIGGER_SCORE = 0.01
EXACT_NAME_SCORE = 0.02
EXACT_ALIAS_SCORE = 0.03
TRIGGER_PREFIX_SCORE = 0.1
ALIAS_PREFIX_SCORE = 0.15
NAME_PREFIX_SCORE = 0.2

TRIGGER_DISTANCE_WEIGHT = 1.0
ALIAS_DISTANCE_WEIGHT = 1.5
NAME_DISTANCE_WEIGHT = 2.0


def levenshtein(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def _strip_bang(value: str) -> str:
    return value[1:] if value.startswith("!") else value


def score_bang(bang: Bang, query: str) -> float:
    """Relevance of ``bang`` for ``query``; lower is better.

    Exact matches short-circuit. Otherwise the best of the trigger, name
    and alias candidates wins, and ``math.inf`` means nothing matched.
    """
    clean = _strip_bang(query).lower()
    original = query.lower()
    trigger = bang.trigger.lower()
    name = bang.name.lower()
    aliases = [alias.lower() for alias in bang.aliases]

    if trigger == clean:
        return EXACT_TRIGGER_SCORE
    if name == original:
        return EXACT_NAME_SCORE
    if clean in aliases:
        return EXACT_ALIAS_SCORE

    trigger_score = math.inf
    if trigger.startswith(clean):
        trigger_score = TRIGGER_PREFIX_SCORE
    elif clean in trigger:
        trigger_score = levenshtein(bang.trigger, clean) * TRIGGER_DISTANCE_WEIGHT

    name_score = math.inf
    if name.startswith(original):
        name_score = NAME_PREFIX_SCORE
    elif original in name:
        name_score = levenshtein(bang.name, original) * NAME_DISTANCE_WEIGHT

    alias_score = math.inf
    for raw_alias, alias in zip(bang.aliases, aliases):
        if alias.startswith(clean):
            alias_score = min(alias_score, ALIAS_PREFIX_SCORE)
        elif clean in alias:
            alias_score = min(
                alias_score, levenshtein(raw_alias, clean) * ALIAS_DISTANCE_WEIGHT
            )

    return min(trigger_score, name_score, alias_score)


def matches_bang(bang: Bang, query: str) -> bool:
    original = query.lower()
    clean = _strip_bang(original)
    return (
        clean in bang.trigger.lower()
        or original in bang.name.lower()
        or any(clean in alias.lower() for alias in bang.aliases)
    )


def rank_bangs(bangs, query: str, limit: int = 20) -> list[Bang]:
    query = (query or "").strip()
    if not query:
        return sorted(bangs, key=lambda bang: bang.trigger)[:limit]

    ranked = [bang for bang in bangs if matches_bang(bang, query)]
    ranked.sort(key=lambda bang: score_bang(bang, query))
    return ranked[:limit]

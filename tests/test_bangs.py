from datetime import datetime, timezone

import pytest

from bangroute.services.bangs import (
    Bang,
    BangCatalog,
    SettingsSnapshot,
    is_bang,
    is_complete_bang,
    load_builtin_bangs,
)


def test_is_bang_requires_string_fields():
    assert is_bang({"t": "g", "s": "Google", "u": "https://g.test/?q=%s", "d": "g.test"})
    assert is_bang({"t": "", "s": "", "u": "", "d": ""})
    assert not is_bang({"t": "g", "s": "Google", "u": "https://g.test"})
    assert not is_bang({"t": "g", "s": "Google", "u": "x", "d": "y", "ts": "google"})
    assert not is_bang({"t": "g", "s": "Google", "u": "x", "d": "y", "c": False})
    assert not is_bang(["g"])


def test_is_complete_bang_rejects_blank_fields():
    assert not is_complete_bang({"t": " ", "s": "Google", "u": "x", "d": "y"})
    assert is_complete_bang({"t": "g", "s": "Google", "u": "x", "d": "y", "c": True})


def test_bang_dict_form_keeps_custom_discriminant():
    bang = Bang.from_dict({"t": "mine", "s": "Mine", "u": "https://m.test/%s", "d": "m.test", "c": True})

    assert bang.custom is True
    assert bang.to_dict() == {"t": "mine", "s": "Mine", "u": "https://m.test/%s", "d": "m.test", "c": True}
    assert Bang.from_dict({"t": "g", "s": "G", "u": "u", "d": "d"}).custom is False


def test_builtin_bangs_ship_with_google():
    bangs = load_builtin_bangs()

    google = next(bang for bang in bangs if bang.trigger == "g")
    assert google.name == "Google"
    assert not google.custom
    assert len({bang.trigger for bang in bangs}) == len(bangs)


def test_catalog_prefers_custom_over_builtin():
    builtin = Bang("g", "Google", "https://www.google.com/search?q={{{s}}}", "www.google.com", ("google",))
    custom = Bang("g", "My Google", "https://google.test/?q=%s", "google.test", custom=True)
    catalog = BangCatalog([custom], [builtin])

    assert catalog.find_by_trigger("g") is custom
    assert catalog.find_by_trigger("google") is builtin
    assert catalog.find_by_trigger("nope") is None
    assert len(catalog) == 2


def test_snapshot_from_dict_parses_wire_format():
    snapshot = SettingsSnapshot.from_dict(
        {
            "userId": 7,
            "customBangs": [{"t": "mine", "s": "Mine", "u": "https://m.test/%s", "d": "m.test"}],
            "defaultBang": {"t": "ddg", "s": "DuckDuckGo", "u": "https://duckduckgo.com/?q={{{s}}}", "d": "duckduckgo.com"},
            "lastModified": "2024-03-01T10:00:00Z",
        }
    )

    assert snapshot.user_id == "7"
    assert snapshot.custom_bangs[0].custom is True
    assert snapshot.default_bang.trigger == "ddg"
    assert snapshot.last_modified == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert snapshot.to_dict()["customBangs"][0]["c"] is True


def test_snapshot_without_default_omits_key():
    snapshot = SettingsSnapshot.from_dict({"customBangs": [], "lastModified": "2024-03-01T10:00:00"})

    assert snapshot.default_bang is None
    assert "defaultBang" not in snapshot.to_dict()
    assert snapshot.last_modified.tzinfo is not None


@pytest.mark.parametrize(
    "payload",
    [
        None,
        {"customBangs": "nope", "lastModified": "2024-03-01T10:00:00Z"},
        {"customBangs": [{"t": "", "s": "x", "u": "x", "d": "x"}], "lastModified": "2024-03-01T10:00:00Z"},
        {"customBangs": [], "defaultBang": {"t": "g"}, "lastModified": "2024-03-01T10:00:00Z"},
        {"customBangs": []},
        {"customBangs": [], "lastModified": "yesterday"},
    ],
)
def test_snapshot_rejects_invalid_payloads(payload):
    with pytest.raises(ValueError):
        SettingsSnapshot.from_dict(payload)


def test_snapshot_timestamps_are_normalized_to_utc():
    snapshot = SettingsSnapshot.from_dict(
        {"customBangs": [], "lastModified": "2024-06-01T14:00:00+02:00"}
    )

    assert snapshot.last_modified == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert snapshot.last_modified.utcoffset().total_seconds() == 0
    assert snapshot.to_dict()["lastModified"] == "2024-06-01T12:00:00+00:00"

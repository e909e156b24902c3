from types import SimpleNamespace

from bangroute.services.bangs import DEFAULT_BANG, Bang
from bangroute.services.redirect import (
    BangResolver,
    build_bang_url,
    extract_bang,
    fill_template,
    has_placeholder,
)


def test_bang_with_query(store):
    resolver = BangResolver(store)

    assert resolver.resolve("!g hello") == "https://www.google.com/search?q=hello"
    assert resolver.resolve("hello !w world") == (
        "https://en.wikipedia.org/wiki/Special:Search?search=hello%20world"
    )


def test_bang_without_query_goes_to_domain(store):
    assert BangResolver(store).resolve("!g") == "https://www.google.com"


def test_plain_query_uses_default_bang(store):
    assert BangResolver(store).resolve("hello world") == (
        "https://www.google.com/search?q=hello%20world"
    )
    assert store.get_default_bang() == DEFAULT_BANG


def test_unknown_bang_sends_full_query_to_default(store):
    store.set_default_bang(store.find_bang("ddg"))

    assert BangResolver(store).resolve("!unknownbang test") == (
        "https://duckduckgo.com/?q=!unknownbang%20test"
    )


def test_bang_trigger_is_case_insensitive_and_aliases_resolve(store):
    resolver = BangResolver(store)

    assert resolver.resolve("!WIKI python") == (
        "https://en.wikipedia.org/wiki/Special:Search?search=python"
    )


def test_direct_link_bang_ignores_query(store):
    assert BangResolver(store).resolve("!gmail inbox") == "https://mail.google.com/mail/u/0/"


def test_empty_query_resolves_to_nothing(store):
    assert BangResolver(store).resolve("   ") is None
    assert BangResolver(store).resolve(None) is None


def test_resolver_only_needs_find_and_default():
    fake_store = SimpleNamespace(
        find_bang=lambda trigger: None,
        get_default_bang_or_store=lambda: Bang("x", "X", "https://x.test/%s", "x.test"),
    )

    assert BangResolver(fake_store).resolve("a b") == "https://x.test/a%20b"


def test_fill_template_encoding():
    assert fill_template("https://s.test/?q=%s", "a/b c&d") == "https://s.test/?q=a/b%20c%26d"
    assert fill_template("https://s.test/?q={{{s}}}", "c++") == "https://s.test/?q=c%2B%2B"
    assert fill_template("https://s.test/%s/%s", "x") == "https://s.test/x/%s"


def test_placeholder_helpers():
    assert has_placeholder("https://s.test/?q={{{s}}}")
    assert not has_placeholder("https://s.test/")
    assert extract_bang("find !GH flask") == "gh"
    assert extract_bang("no bang here") is None
    direct = Bang("d", "Direct", "https://d.test/", "d.test")
    assert build_bang_url(direct, "") == "https://d.test/"


def test_undecodable_characters_do_not_break_resolution(store):
    resolver = BangResolver(store)

    assert resolver.resolve("!g \udcff") == "https://www.google.com/search?q=%3F"
    assert resolver.resolve("caf\udce9 menu") == "https://www.google.com/search?q=caf%3F%20menu"

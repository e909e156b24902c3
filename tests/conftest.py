import pytest

from bangroute import create_app
from bangroute.config import TestConfig
from bangroute.extensions import db
from bangroute.services.bangs import Bang
from bangroute.services.storage import MemoryStorage
from bangroute.services.store import LocalBangStore


BUILTINS = [
    Bang("g", "Google", "https://www.google.com/search?q={{{s}}}", "www.google.com", ("google",)),
    Bang("ddg", "DuckDuckGo", "https://duckduckgo.com/?q={{{s}}}", "duckduckgo.com"),
    Bang("w", "Wikipedia", "https://en.wikipedia.org/wiki/Special:Search?search={{{s}}}", "en.wikipedia.org", ("wiki",)),
    Bang("gh", "GitHub", "https://github.com/search?q={{{s}}}", "github.com"),
    Bang("gmail", "Gmail", "https://mail.google.com/mail/u/0/", "mail.google.com"),
]


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return LocalBangStore(storage, builtin_loader=lambda: list(BUILTINS))


@pytest.fixture
def events(store):
    received = []
    store.subscribe(received.append)
    return received

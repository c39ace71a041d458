import pytest
from werkzeug.test import EnvironBuilder

import bzcgi.process as process
from bzcgi.cgi import BugzillaCgi
from bzcgi.config import SiteParams
from bzcgi.recent_search import RecentSearchStore


# Wrapper construction runs the one-time worker setup; keep it from ignoring
# SIGTERM inside the test runner.
process._initialized = True


class StaticAuthorizer:
    def __init__(self, user_id: int = 0, can_login: bool = True):
        self._user_id = user_id
        self._can_login = can_login

    def user_id(self) -> int:
        return self._user_id

    def can_login(self) -> bool:
        return self._can_login


@pytest.fixture
def recent_store(tmp_path):
    store = RecentSearchStore(db_path=str(tmp_path / "recent_search.db"))
    store.init_db()
    return store


@pytest.fixture
def make_request():
    def _make(path="/buglist.cgi", *, method="GET", base_url="http://localhost/", **kwargs):
        return EnvironBuilder(path=path, method=method, base_url=base_url, **kwargs).get_request()

    return _make


@pytest.fixture
def make_cgi(make_request, recent_store):
    def _make(
        path="/buglist.cgi",
        *,
        method="GET",
        base_url="http://localhost/",
        user_id=0,
        can_login=True,
        params=None,
        hooks=None,
        enforce_location=True,
        **kwargs,
    ):
        request = make_request(path, method=method, base_url=base_url, **kwargs)
        return BugzillaCgi(
            request,
            authorizer=StaticAuthorizer(user_id, can_login),
            params=params or SiteParams(urlbase="http://localhost/"),
            recent_searches=recent_store,
            hooks=hooks,
            enforce_location=enforce_location,
        )

    return _make

from werkzeug.datastructures import MultiDict

from bzcgi.params import ParamStore


def test_get_reads_query_string_in_order(make_request):
    req = make_request(query_string="b=2&a=1&b=3")
    p = ParamStore.from_request(req)

    assert p.names() == ["b", "a"]
    assert p.first("b") == "2"
    assert p.all("b") == ["2", "3"]
    assert p.first("missing") is None
    assert p.all("missing") == []


def test_post_falls_back_to_url_parameters(make_request):
    req = make_request(
        method="POST",
        query_string="product=Widget&bug_status=NEW",
        data={"Bugzilla_login": "me@example.com", "bug_status": "ASSIGNED"},
    )
    p = ParamStore.from_request(req)

    # Body wins where both carry the name.
    assert p.first("bug_status") == "ASSIGNED"
    assert p.first("product") == "Widget"
    assert set(p.names()) == {"Bugzilla_login", "bug_status", "product"}


def test_get_does_not_merge_url_parameters(make_request):
    req = make_request(query_string="product=Widget")
    p = ParamStore.from_request(req)
    assert p.merge_url is False
    assert p.first("product") == "Widget"


def test_delete_removes_body_and_url_values():
    p = ParamStore(MultiDict([("token", "a")]), MultiDict([("token", "b"), ("x", "1")]), merge_url=True)
    p.delete("token")
    assert not p.has("token")
    assert p.names() == ["x"]


def test_set_replaces_all_values():
    p = ParamStore(MultiDict([("list_id", "1"), ("list_id", "2")]))
    p.set("list_id", 9)
    assert p.all("list_id") == ["9"]


def test_empty_value_still_counts_as_present():
    p = ParamStore(MultiDict([("chfieldfrom", "")]))
    assert p.has("chfieldfrom")
    assert p.first("chfieldfrom") == ""
    assert not p.is_empty()


def test_query_string_percent_encodes():
    p = ParamStore(MultiDict([("short_desc", "crash & burn"), ("f1", "a/b")]))
    assert p.query_string() == "short_desc=crash%20%26%20burn&f1=a%2Fb"


def test_should_set_honours_defined_marker():
    p = ParamStore(MultiDict([("defined_isobsolete", "1")]))
    assert p.should_set("isobsolete")
    assert not p.should_set("ispatch")

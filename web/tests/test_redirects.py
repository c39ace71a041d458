import pytest
from werkzeug.exceptions import HTTPException

from bzcgi.config import SiteParams
from bzcgi.hooks import PATH_INFO_WHITELIST, HookRegistry


def _redirect(exc_info):
    resp = exc_info.value.response
    return resp.status_code, resp.headers["Location"]


def test_get_search_gets_a_list_id_and_redirects(make_cgi, recent_store):
    cgi = make_cgi(query_string="product=Widget&bug_status=NEW&j_top=AND", user_id=7)

    with pytest.raises(HTTPException) as exc:
        cgi.redirect_search_url()

    status, location = _redirect(exc)
    assert status == 302
    assert location == "http://localhost/buglist.cgi?product=Widget&bug_status=NEW&list_id=1"
    assert recent_store.check_quietly(1, 7) is not None
    assert recent_store.check_quietly(2, 7) is None


def test_valid_list_id_means_nothing_to_do(make_cgi, recent_store):
    placeholder = recent_store.create_placeholder(7)
    cgi = make_cgi(query_string=f"product=Widget&j_top=AND&list_id={placeholder.id}", user_id=7)

    assert cgi.redirect_search_url() is None
    # Nothing was cleaned either.
    assert cgi.args.first("j_top") == "AND"
    assert recent_store.check_quietly(placeholder.id + 1, 7) is None


def test_someone_elses_list_id_is_replaced(make_cgi, recent_store):
    other = recent_store.create_placeholder(99)
    cgi = make_cgi(query_string=f"product=Widget&list_id={other.id}", user_id=7)

    with pytest.raises(HTTPException) as exc:
        cgi.redirect_search_url()

    _, location = _redirect(exc)
    assert location.endswith(f"list_id={other.id + 1}")
    assert recent_store.check_quietly(other.id + 1, 7) is not None


def test_anonymous_get_is_left_alone(make_cgi):
    cgi = make_cgi(query_string="product=Widget&token=abc")
    assert cgi.redirect_search_url() is None
    assert cgi.args.first("token") == "abc"


def test_anonymous_post_is_cleaned_and_redirected_without_list_id(make_cgi):
    cgi = make_cgi(method="POST", data={"product": "Widget", "GoAheadAndLogIn": "1"})

    with pytest.raises(HTTPException) as exc:
        cgi.redirect_search_url()

    status, location = _redirect(exc)
    assert status == 302
    assert location == "http://localhost/buglist.cgi?product=Widget"


def test_long_post_is_not_redirected(make_cgi, recent_store):
    params = SiteParams(urlbase="http://localhost/", cgi_uri_limit=60)
    cgi = make_cgi(method="POST", data={"short_desc": "x" * 80}, user_id=7, params=params)

    assert cgi.redirect_search_url() is None
    assert cgi.args.first("list_id") == "1"
    assert len(cgi.self_url()) >= 60


def test_post_at_exactly_the_limit_is_not_redirected(make_cgi):
    probe = make_cgi(method="POST", data={"product": "Widget"})
    limit = len(probe.self_url())

    params = SiteParams(urlbase="http://localhost/", cgi_uri_limit=limit)
    cgi = make_cgi(method="POST", data={"product": "Widget"}, params=params)
    assert cgi.redirect_search_url() is None

    params = SiteParams(urlbase="http://localhost/", cgi_uri_limit=limit + 1)
    cgi = make_cgi(method="POST", data={"product": "Widget"}, params=params)
    with pytest.raises(HTTPException):
        cgi.redirect_search_url()


def test_no_redirect_keeps_the_new_list_id(make_cgi):
    cgi = make_cgi(query_string="product=Widget&no_redirect=1", user_id=7)

    assert cgi.redirect_search_url() is None
    assert cgi.args.first("list_id") == "1"
    assert not cgi.args.has("no_redirect")


def test_reget_last_list_and_empty_requests_do_nothing(make_cgi):
    assert make_cgi(query_string="regetlastlist=1&j_top=AND", user_id=7).redirect_search_url() is None
    assert make_cgi(user_id=7).redirect_search_url() is None


def test_search_that_cleans_to_nothing_gets_no_list_id(make_cgi, recent_store):
    cgi = make_cgi(query_string="query_format=advanced&product=", user_id=7)

    with pytest.raises(HTTPException) as exc:
        cgi.redirect_search_url()

    _, location = _redirect(exc)
    assert location == "http://localhost/buglist.cgi"
    assert recent_store.check_quietly(1, 7) is None


def test_ssl_redirect_on_construction(make_cgi):
    params = SiteParams(urlbase="http://localhost/", sslbase="https://localhost/", ssl_redirect=True)

    with pytest.raises(HTTPException) as exc:
        make_cgi("/show_bug.cgi", query_string="id=5&POSTDATA=junk", params=params)

    status, location = _redirect(exc)
    assert status == 301
    assert location == "https://localhost/show_bug.cgi?id=5"


def test_no_ssl_redirect_when_already_secure(make_cgi):
    params = SiteParams(urlbase="http://localhost/", sslbase="https://localhost/", ssl_redirect=True)
    cgi = make_cgi("/show_bug.cgi", base_url="https://localhost/", params=params)
    assert cgi.is_secure()


def test_forwarded_proto_counts_as_secure_behind_a_proxy(make_cgi):
    params = SiteParams(
        urlbase="http://localhost/", sslbase="https://localhost/", ssl_redirect=True, inbound_proxies="*"
    )
    cgi = make_cgi("/show_bug.cgi", params=params, headers={"X-Forwarded-Proto": "https"})
    assert cgi.is_secure()


def test_forwarded_proto_from_an_unlisted_peer_is_ignored(make_cgi):
    params = SiteParams(
        urlbase="http://localhost/",
        sslbase="https://localhost/",
        ssl_redirect=True,
        inbound_proxies="10.0.0.1, 10.0.0.2",
    )

    with pytest.raises(HTTPException) as exc:
        make_cgi(
            "/show_bug.cgi",
            query_string="id=5",
            params=params,
            headers={"X-Forwarded-Proto": "https"},
            environ_overrides={"REMOTE_ADDR": "127.0.0.1"},
        )

    status, location = _redirect(exc)
    assert status == 301
    assert location == "https://localhost/show_bug.cgi?id=5"

    trusted = make_cgi(
        "/show_bug.cgi",
        params=params,
        headers={"X-Forwarded-Proto": "https"},
        environ_overrides={"REMOTE_ADDR": "10.0.0.2"},
    )
    assert trusted.is_secure()


def test_attachment_script_is_exempt(make_cgi):
    params = SiteParams(
        urlbase="http://localhost/",
        sslbase="https://localhost/",
        ssl_redirect=True,
        attachment_base="http://bug-%bugid%.attach.example/",
    )
    cgi = make_cgi("/attachment.cgi", base_url="http://bug-4.attach.example/", params=params)
    assert cgi.url_is_attachment_base(4)


def test_attachment_origin_is_sent_back_to_urlbase(make_cgi):
    params = SiteParams(urlbase="http://localhost/", attachment_base="http://bug-%bugid%.attach.example/")

    with pytest.raises(HTTPException) as exc:
        make_cgi("/show_bug.cgi", base_url="http://bug-4.attach.example/", query_string="id=4", params=params)

    assert _redirect(exc) == (302, "http://localhost/show_bug.cgi?id=4")


def test_foreign_host_is_sent_to_canonical_base(make_cgi):
    params = SiteParams(urlbase="http://bugs.example/")

    with pytest.raises(HTTPException) as exc:
        make_cgi("/show_bug.cgi", base_url="http://other.example/", query_string="id=1", params=params)

    assert _redirect(exc) == (302, "http://bugs.example/show_bug.cgi?id=1")


def test_stray_path_info_is_stripped(make_cgi):
    with pytest.raises(HTTPException) as exc:
        make_cgi("/buglist.cgi/some/junk", query_string="product=Widget")

    assert _redirect(exc) == (302, "http://localhost/buglist.cgi?product=Widget")


def test_rest_and_hooked_scripts_may_have_path_info(make_cgi):
    cgi = make_cgi("/rest.cgi/bug/35")
    assert cgi.script_name == "rest.cgi"
    assert cgi.path_info == "/bug/35"

    hooks = HookRegistry()
    hooks.register(PATH_INFO_WHITELIST, lambda args: args["whitelist"].append("jsonrpc.cgi"))
    cgi = make_cgi("/jsonrpc.cgi/call", hooks=hooks)
    assert cgi.relative_url() == "jsonrpc.cgi/call"

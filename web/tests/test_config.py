import pytest

from bzcgi.config import CGI_URI_LIMIT, SiteParams, get_site_params, reset_site_params


def test_from_env(monkeypatch):
    monkeypatch.setenv("BZ_URLBASE", "https://bugs.example/")
    monkeypatch.setenv("BZ_SSL_REDIRECT", "yes")
    monkeypatch.setenv("BZ_STRICT_TRANSPORT_SECURITY", "Include_Subdomains")
    monkeypatch.setenv("BZ_CSP", "0")
    monkeypatch.setenv("BZ_CGI_URI_LIMIT", "not-a-number")

    params = SiteParams.from_env()
    assert params.urlbase == "https://bugs.example/"
    assert params.ssl_redirect is True
    assert params.strict_transport_security == "include_subdomains"
    assert params.csp_enabled is False
    assert params.cgi_uri_limit == CGI_URI_LIMIT


def test_singleton_is_per_process_until_reset(monkeypatch):
    monkeypatch.setenv("BZ_URLBASE", "http://one.example/")
    reset_site_params()
    first = get_site_params()
    monkeypatch.setenv("BZ_URLBASE", "http://two.example/")
    assert get_site_params() is first
    reset_site_params()
    assert get_site_params().urlbase == "http://two.example/"
    reset_site_params()


def test_bad_sts_policy_is_rejected():
    with pytest.raises(ValueError):
        SiteParams(strict_transport_security="sometimes")


def test_correct_urlbase():
    plain = SiteParams(urlbase="http://bugs.example/")
    assert plain.correct_urlbase(True) == "http://bugs.example/"

    mixed = SiteParams(urlbase="http://bugs.example/", sslbase="https://bugs.example/")
    assert mixed.correct_urlbase(False) == "http://bugs.example/"
    assert mixed.correct_urlbase(True) == "https://bugs.example/"

    forced = SiteParams(urlbase="http://bugs.example/", sslbase="https://bugs.example/", ssl_redirect=True)
    assert forced.correct_urlbase(False) == "https://bugs.example/"


def test_use_attachbase():
    assert not SiteParams(urlbase="https://a/").use_attachbase()
    assert not SiteParams(urlbase="https://a/", attachment_base="https://a/").use_attachbase()
    assert SiteParams(urlbase="https://a/", attachment_base="https://b/").use_attachbase()


def test_trusted_proxies():
    assert SiteParams().trusts_proxy("10.0.0.1") is False
    listed = SiteParams(inbound_proxies="10.0.0.1, 10.0.0.2")
    assert listed.trusts_proxy("10.0.0.2") is True
    assert listed.trusts_proxy("127.0.0.1") is False
    assert listed.trusts_proxy(None) is False
    assert SiteParams(inbound_proxies="*").trusts_proxy("192.0.2.9") is True

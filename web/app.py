from flask import Flask, g, jsonify, request, session
from markupsafe import escape

from bzcgi.attachment import request_is_secure, url_is_attachment_base
from bzcgi.auth import SessionAuthorizer
from bzcgi.cgi import BugzillaCgi
from bzcgi.config import get_site_params
from bzcgi.csp import ContentSecurityPolicy
from bzcgi.errors import CgiParseError, CodeError, public_error_message
from bzcgi.headers import add_security_headers
from bzcgi.hooks import HookRegistry

import csv
import hashlib
import io
import json
import logging
import os
import secrets


logger = logging.getLogger(__name__)

app = Flask(__name__)

# Extensions register their callbacks here (path_info_whitelist, cgi_headers).
hooks = HookRegistry()

_env_secret = (os.environ.get('FLASK_SECRET_KEY') or os.environ.get('SECRET_KEY') or '').strip()
if _env_secret:
    app.secret_key = _env_secret
else:
    # Sessions reset on restart without a configured key.
    app.secret_key = secrets.token_urlsafe(48)

# Cookie hardening. Defaults chosen to avoid breaking common HTTP deployments.
app.config.setdefault('SESSION_COOKIE_HTTPONLY', True)
app.config.setdefault('SESSION_COOKIE_SAMESITE', 'Lax')
if (os.environ.get('SESSION_COOKIE_SECURE') or '').strip() in ('1', 'true', 'True', 'yes', 'on'):
    app.config['SESSION_COOKIE_SECURE'] = True

# Liveness probes must not be bounced to another host or scheme.
_LOCATION_EXEMPT_ENDPOINTS = ('health', 'static')


@app.before_request
def _install_cgi():
    params = get_site_params()
    cgi = BugzillaCgi(
        request._get_current_object(),
        authorizer=SessionAuthorizer(session, params),
        params=params,
        hooks=hooks,
        enforce_location=False,
    )
    g.cgi = cgi
    if request.endpoint not in _LOCATION_EXEMPT_ENDPOINTS:
        cgi.enforce_canonical_location()
    return None


@app.after_request
def _cgi_headers(resp):
    cgi = g.get('cgi')
    if cgi is None or cgi.state.header_done:
        return resp
    return cgi.apply_headers(resp)


@app.errorhandler(CgiParseError)
def _cgi_parse_error(e: CgiParseError):
    # No templates here: rendering one needs the request we failed to parse.
    logger.error("%s", e)
    resp = app.response_class(f"CGI parsing error: {e.status}\n", status=e.status, mimetype='text/plain')
    # No wrapper exists for this request, so the protective headers are added here.
    params = get_site_params()
    add_security_headers(
        resp.headers,
        params=params,
        is_secure=request_is_secure(request, params),
        on_attachment_base=url_is_attachment_base(request, params),
        csp=ContentSecurityPolicy.with_overrides() if params.csp_enabled else None,
    )
    return resp


@app.errorhandler(CodeError)
def _code_error(e: CodeError):
    logger.error("Code error %s", e.tag, exc_info=e)
    return app.response_class(public_error_message(e) + "\n", status=500, mimetype='text/plain')


@app.route('/health', methods=['GET'])
def health():
    return jsonify({'ok': True})


def _buglist_csv(cgi: BugzillaCgi):
    cgi.set_dated_content_disp('attachment', 'bugs', 'csv')
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(['param', 'value'])
    for name in sorted(cgi.args.names()):
        for value in cgi.args.all(name):
            writer.writerow([name, value])
    return app.response_class(buf.getvalue(), mimetype='text/csv')


@app.route('/buglist.cgi', methods=['GET', 'POST'])
def buglist():
    cgi = g.cgi
    # May end the request with a redirect to the list_id form of this URL.
    cgi.redirect_search_url()

    if cgi.args.first('ctype') == 'csv':
        return _buglist_csv(cgi)

    cgi.content_security_policy(script_src=['self', 'nonce'])
    query = cgi.canonicalise_query('list_id', 'order', 'ctype')
    list_id = cgi.args.first('list_id') or ''
    nonce = cgi.csp_nonce()
    body = (
        '<!DOCTYPE html>\n'
        '<html><head><title>Bug List</title></head><body>\n'
        f'<p id="query">{escape(query)}</p>\n'
        f'<p id="list_id">{escape(list_id)}</p>\n'
        f'<script nonce="{escape(nonce)}">'
        f'window.bz_list_url = {json.dumps(cgi.relative_url())};'
        '</script>\n'
        '</body></html>\n'
    )
    return app.response_class(body, mimetype='text/html')


@app.route('/config.cgi', methods=['GET'])
def config_cgi():
    site = g.cgi.site
    payload = {
        'urlbase': site.urlbase,
        'sslbase': site.sslbase,
        'attachment_base': site.attachment_base,
        'strict_transport_security': site.strict_transport_security,
    }
    body = json.dumps(payload, sort_keys=True)
    etag = hashlib.sha256(body.encode('utf-8')).hexdigest()[:32]

    if g.cgi.check_etag(etag):
        resp = app.response_class(status=304)
    else:
        resp = app.response_class(body, mimetype='application/json')
    resp.headers['ETag'] = f'"{etag}"'
    return resp


@app.route('/rest.cgi/<path:resource>', methods=['GET'])
def rest(resource: str):
    return jsonify({'resource': resource})


@app.route('/attachment.cgi', methods=['GET'])
def attachment():
    cgi = g.cgi
    try:
        bug_id = int(cgi.args.first('bugid') or 0)
    except ValueError:
        bug_id = 0
    return jsonify({
        'attachment_origin': cgi.url_is_attachment_base(),
        'bug_origin': cgi.url_is_attachment_base(bug_id) if bug_id else False,
    })

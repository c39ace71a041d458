"""WSGI entrypoint used by Gunicorn.

Run: `gunicorn -b 0.0.0.0:8000 wsgi:app`
"""

from bzcgi.process import init_process_globals

init_process_globals()

from app import app as app  # noqa: E402

# Common WSGI convention for other servers/tools.
application = app

"""
Internal trigger app (INTERNAL_PORT).

Exposes only the /internal/* endpoints that other backend services call
to push notifications and dashboard refreshes. It is never exposed to
browsers; the public app lives in server.py.
"""
import logging

from flask import Flask
from werkzeug.serving import make_server

from adscreener.routes import internal as internal_bp

log = logging.getLogger("adscreener.internal_server")


def create_internal_app() -> Flask:
    app = Flask(__name__)
    app.register_blueprint(internal_bp.bp)
    return app


def start(port: int):
    """Serve the internal app in the calling thread (run in a daemon thread)."""
    log.info("Internal HTTP server listening on port %d", port)
    srv = make_server("0.0.0.0", port, create_internal_app(), threaded=True)
    srv.serve_forever()

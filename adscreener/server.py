"""
AdScreener notification server entrypoint.

Runs the public app (REST notification store plus the /ws realtime
endpoint) on HTTP_PORT and the internal trigger app on INTERNAL_PORT.
"""
import logging
import threading

from flask import Flask

from adscreener import config, internal_server
from adscreener.routes import notifications as notifications_bp
from adscreener.routes.ws import sock

log = logging.getLogger("adscreener.server")


def create_app() -> Flask:
    app = Flask(__name__)
    app.config["SOCK_SERVER_OPTIONS"] = {"ping_interval": config.WS_PING_INTERVAL}
    app.register_blueprint(notifications_bp.bp)
    sock.init_app(app)
    return app


def main():
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
    )
    threading.Thread(target=internal_server.start, args=(config.INTERNAL_PORT,),
                     daemon=True, name="internal-http").start()
    log.info("Starting notification server on port %d", config.HTTP_PORT)
    create_app().run(host="0.0.0.0", port=config.HTTP_PORT, threaded=True)


if __name__ == "__main__":
    main()

"""
main.py

Flask entry point for the ephemeral file relay.

Dependencies:
  - Python packages: Flask, flask-restx, flask-cors, redis, celery
  - Infrastructure: Redis server only with RELAY_METADATA_BACKEND=redis

Notes:
  - API v1 endpoints available at /api/v1/ with Swagger docs at /api/v1/docs
  - Expired files are removed by an in-process reaper thread, or by the
    Celery beat task when RELAY_REAPER_MODE=celery
  - Uses application factory pattern for better testability
"""

import atexit
import logging
import os

from app_factory import create_app

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = create_app()

# atexit runs in reverse order: the reaper stops before the services close
atexit.register(app.container.close)

if app.reaper is not None:
    app.reaper.start()
    atexit.register(app.reaper.stop, 5.0)

if __name__ == "__main__":
    host = os.getenv("FLASK_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_PORT", 8000))
    debug = os.getenv("FLASK_DEBUG", "false").lower() == "true"

    # The reloader would start a second process with its own reaper
    app.run(host=host, port=port, debug=debug, use_reloader=False)

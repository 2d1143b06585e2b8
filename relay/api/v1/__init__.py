"""
Relay HTTP API, version 1

Mounted under /api/<API_VERSION>; the OpenAPI document is served by
flask-restx at /api/<API_VERSION>/docs.
"""

import os

from flask import Blueprint
from flask_restx import Api

API_VERSION = os.getenv("API_VERSION", "v1")

api_v1_bp = Blueprint("api_v1", __name__, url_prefix=f"/api/{API_VERSION}")

api = Api(
    api_v1_bp,
    version="1.0",
    title="Relay API",
    description="Ephemeral file relay: upload a file, share the link, it disappears",
    doc="/docs",
)

# models and namespaces import `api` and API_VERSION from this module
from .namespaces import file_ns  # noqa: E402

api.add_namespace(file_ns, path="/files")

"""
HTTP API: FastAPI app over the order and payment services.

    from orderflow.api import create_app

    app = create_app()
"""

from orderflow.api._app import create_app
from orderflow.api._errors import HTTP_STATUS, error_body, unwrap

__all__ = ("create_app", "HTTP_STATUS", "error_body", "unwrap")

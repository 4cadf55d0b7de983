import re
import uuid

from flask import g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"

# Client supplied ids are trusted only when they look like an id
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def current_request_id():
    """Correlation id of the request being served, or None outside a request."""
    if not has_request_context():
        return None
    return g.get("request_id")


def init_request_id_middleware(app):
    """Give every request a correlation id and echo it on the response."""

    @app.before_request
    def bind_request_id():
        incoming = request.headers.get(REQUEST_ID_HEADER, "")
        g.request_id = incoming if _SAFE_REQUEST_ID.match(incoming) else uuid.uuid4().hex

    @app.after_request
    def expose_request_id(response):
        request_id = current_request_id()
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

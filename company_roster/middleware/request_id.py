"""
Request ID Middleware

Tags every request with an id, taken from an incoming X-Request-ID header or
generated, and echoes it back on the response. The id is stored in
request.state and in the logging context, so every log line written while
the request is handled carries it.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import uuid

from company_roster.utils.logging import request_id_var

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
        if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH:
            request_id = incoming
        else:
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

TRACE_HEADER = "X-Trace-ID"
MAX_TRACE_ID_LENGTH = 128


def resolve_trace_id(request: Request) -> str:
    incoming = (request.headers.get(TRACE_HEADER) or "").strip()
    if incoming and len(incoming) <= MAX_TRACE_ID_LENGTH:
        return incoming
    return str(uuid.uuid4())


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = resolve_trace_id(request)
        request.state.trace_id = trace_id
        response: Response = await call_next(request)
        response.headers[TRACE_HEADER] = trace_id
        return response

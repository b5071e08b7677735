from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.stockflow.core.context import build_request_context
from app.stockflow.core.security import decode_token


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


class CallerContextMiddleware(BaseHTTPMiddleware):
    """Best-effort caller lookup for request logging.

    Routes still authenticate through ``get_current_caller``; an invalid token
    here only leaves ``user_id`` unset.
    """

    async def dispatch(self, request: Request, call_next):
        request.state.user_id = None

        token = _bearer_token(request)
        if token:
            try:
                payload = decode_token(token)
            except JWTError:
                payload = {}
            sub = payload.get("sub")
            request.state.user_id = str(sub) if sub else None

        request.state.context = build_request_context(
            user_id=request.state.user_id,
            trace_id=getattr(request.state, "trace_id", ""),
        )

        return await call_next(request)

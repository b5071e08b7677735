from fastapi import Depends, Request
from jose import JWTError
from pydantic import ValidationError as PydanticValidationError

from app.stockflow.core.context import RequestContext, build_request_context
from app.stockflow.core.error_catalog import AppError, ErrorCatalog
from app.stockflow.core.security import Caller, TokenData, caller_from_token, decode_token, oauth2_scheme


def get_current_token_data(token: str = Depends(oauth2_scheme)) -> TokenData:
    try:
        payload = decode_token(token)
        return TokenData(**payload)
    except (JWTError, PydanticValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc


def get_current_caller(token_data: TokenData = Depends(get_current_token_data)) -> Caller:
    if not token_data.sub:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    return caller_from_token(token_data)


def require_request_context(
    request: Request,
    caller: Caller = Depends(get_current_caller),
) -> RequestContext:
    context = build_request_context(
        user_id=caller.user_ref,
        trace_id=getattr(request.state, "trace_id", ""),
    )
    request.state.context = context
    return context


__all__ = [
    "get_current_token_data",
    "get_current_caller",
    "require_request_context",
]

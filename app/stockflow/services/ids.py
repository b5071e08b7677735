import uuid

from app.stockflow.core.error_catalog import NotFoundError


def parse_id(value, *, entity: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise NotFoundError(f"{entity.replace('_', ' ')} not found", **{f"{entity}_id": str(value)}) from exc

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError

from app.stockflow.core.error_catalog import ConflictError, NotFoundError, ValidationError
from app.stockflow.db.models import Location
from app.stockflow.repos.locations import LocationRepository
from app.stockflow.services.ids import parse_id

LOCATION_TYPES = ("store", "warehouse")
_CONTACT_FIELDS = (
    "manager_ref",
    "address_line_1",
    "address_line_2",
    "city",
    "state",
    "postal_code",
    "phone_number",
    "email",
    "notes",
)
_UPDATABLE_FIELDS = ("location_name", "location_code", "location_type", "is_active") + _CONTACT_FIELDS


def normalize_location_code(value: str | None) -> str:
    code = (value or "").strip().upper()
    if not code:
        raise ValidationError("location_code is required", field="location_code")
    return code


def _require_name(value: str | None) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationError("location_name is required", field="location_name")
    return name


def _require_type(value: str | None) -> str:
    if value not in LOCATION_TYPES:
        raise ValidationError(
            "location_type must be store or warehouse",
            field="location_type",
            allowed=list(LOCATION_TYPES),
        )
    return value


def location_stats(locations: list[Location]) -> dict:
    return {
        "total": len(locations),
        "stores": sum(1 for location in locations if location.location_type == "store"),
        "warehouses": sum(1 for location in locations if location.location_type == "warehouse"),
        "active": sum(1 for location in locations if location.is_active),
    }


class LocationService:
    def __init__(self, db):
        self.db = db
        self.repo = LocationRepository(db)

    def get_location(self, location_id) -> Location:
        location = self.repo.get_by_id(parse_id(location_id, entity="location"))
        if location is None:
            raise NotFoundError("location not found", location_id=str(location_id))
        return location

    def require_active(self, location_id, *, field: str) -> Location:
        location = self.repo.get_by_id(parse_id(location_id, entity="location"))
        if location is None:
            raise NotFoundError("location not found", location_id=str(location_id), field=field)
        if not location.is_active:
            raise ValidationError(f"{field} refers to an inactive location", field=field)
        return location

    def list_locations(
        self,
        *,
        include_inactive: bool = False,
        location_type: str | None = None,
        search: str | None = None,
    ) -> tuple[list[Location], dict]:
        if location_type is not None:
            _require_type(location_type)
        rows = self.repo.list_locations(
            include_inactive=include_inactive,
            location_type=location_type,
            search=search,
        )
        return rows, location_stats(rows)

    def create_location(self, *, actor: str, location_name: str, location_code: str, location_type: str, **fields) -> Location:
        name = _require_name(location_name)
        code = normalize_location_code(location_code)
        _require_type(location_type)
        if self.repo.get_by_code(code) is not None:
            raise ConflictError("location code already exists", location_code=code)
        now = datetime.utcnow()
        location = Location(
            location_name=name,
            location_code=code,
            location_type=location_type,
            is_active=True,
            created_by=actor,
            created_at=now,
            updated_at=now,
            **{key: value for key, value in fields.items() if key in _CONTACT_FIELDS},
        )
        self.repo.add(location)
        self._commit(code)
        return location

    def update_location(self, location_id, patch: dict) -> Location:
        location = self.get_location(location_id)
        changes = {key: value for key, value in patch.items() if key in _UPDATABLE_FIELDS}
        if "location_name" in changes:
            changes["location_name"] = _require_name(changes["location_name"])
        if "location_type" in changes:
            _require_type(changes["location_type"])
        if "location_code" in changes:
            changes["location_code"] = normalize_location_code(changes["location_code"])
            if self.repo.get_by_code(changes["location_code"], exclude_id=location.id) is not None:
                raise ConflictError("location code already exists", location_code=changes["location_code"])
        if "is_active" in changes:
            if changes["is_active"] is None:
                changes.pop("is_active")
            elif changes["is_active"]:
                changes["deactivated_at"] = None
            elif location.is_active:
                changes["deactivated_at"] = datetime.utcnow()
        for key, value in changes.items():
            setattr(location, key, value)
        location.updated_at = datetime.utcnow()
        self._commit(location.location_code)
        return location

    def deactivate_location(self, location_id) -> Location:
        location = self.get_location(location_id)
        if location.is_active:
            now = datetime.utcnow()
            location.is_active = False
            location.deactivated_at = now
            location.updated_at = now
            self.db.commit()
        return location

    def _commit(self, code: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("location code already exists", location_code=code) from exc

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError

from app.stockflow.core.error_catalog import ConflictError, NotFoundError, ValidationError
from app.stockflow.db.models import RoleGrant
from app.stockflow.repos.roles import RoleGrantRepository
from app.stockflow.services.authorization import RoleSet, TransferRole
from app.stockflow.services.ids import parse_id
from app.stockflow.services.locations import LocationService

VALID_ROLES = tuple(role.value for role in TransferRole)


class RoleService:
    def __init__(self, db):
        self.db = db
        self.repo = RoleGrantRepository(db)
        self.locations = LocationService(db)

    def roles_of(self, user_ref: str) -> RoleSet:
        return RoleSet.from_grants(self.repo.active_grants_for(user_ref))

    def list_grants(self, *, location_id=None, user_ref: str | None = None) -> list[RoleGrant]:
        parsed_location = parse_id(location_id, entity="location") if location_id else None
        return self.repo.list_grants(location_id=parsed_location, user_ref=user_ref)

    def grant_role(self, *, user_ref: str, location_id, role: str, assigned_by: str) -> RoleGrant:
        user_ref = (user_ref or "").strip()
        if not user_ref:
            raise ValidationError("user_ref is required", field="user_ref")
        if role not in VALID_ROLES:
            raise ValidationError(
                f"invalid role; must be one of: {', '.join(VALID_ROLES)}",
                field="role",
                allowed=list(VALID_ROLES),
            )
        location = self.locations.require_active(location_id, field="location_id")

        now = datetime.utcnow()
        grant = self.repo.find(user_ref=user_ref, location_id=location.id, role=role)
        if grant is not None:
            if grant.is_active:
                raise ConflictError(
                    "this user already has this role at this location",
                    user_ref=user_ref,
                    location_id=str(location.id),
                    role=role,
                )
            grant.is_active = True
            grant.assigned_by = assigned_by
            grant.updated_at = now
        else:
            grant = RoleGrant(
                user_ref=user_ref,
                location_id=location.id,
                role=role,
                is_active=True,
                assigned_by=assigned_by,
                created_at=now,
                updated_at=now,
            )
            self.repo.add(grant)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(
                "this user already has this role at this location",
                user_ref=user_ref,
                location_id=str(location.id),
                role=role,
            ) from exc
        return grant

    def revoke_role(self, grant_id) -> RoleGrant:
        grant = self.repo.get_by_id(parse_id(grant_id, entity="role_grant"))
        if grant is None:
            raise NotFoundError("role grant not found", role_grant_id=str(grant_id))
        if grant.is_active:
            grant.is_active = False
            grant.updated_at = datetime.utcnow()
            self.db.commit()
        return grant

from sqlalchemy import select

from app.stockflow.db.models import RoleGrant


class RoleGrantRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, grant_id):
        return self.db.get(RoleGrant, grant_id)

    def find(self, *, user_ref: str, location_id, role: str) -> RoleGrant | None:
        stmt = select(RoleGrant).where(
            RoleGrant.user_ref == user_ref,
            RoleGrant.location_id == location_id,
            RoleGrant.role == role,
        )
        return self.db.execute(stmt).scalars().first()

    def list_grants(
        self,
        *,
        location_id=None,
        user_ref: str | None = None,
        include_inactive: bool = False,
    ) -> list[RoleGrant]:
        stmt = select(RoleGrant)
        if location_id is not None:
            stmt = stmt.where(RoleGrant.location_id == location_id)
        if user_ref:
            stmt = stmt.where(RoleGrant.user_ref == user_ref)
        if not include_inactive:
            stmt = stmt.where(RoleGrant.is_active.is_(True))
        stmt = stmt.order_by(RoleGrant.created_at.asc())
        return self.db.execute(stmt).scalars().all()

    def active_grants_for(self, user_ref: str) -> list[RoleGrant]:
        return self.list_grants(user_ref=user_ref)

    def add(self, grant: RoleGrant) -> RoleGrant:
        self.db.add(grant)
        self.db.flush()
        return grant

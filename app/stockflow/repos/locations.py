from sqlalchemy import func, or_, select

from app.stockflow.db.models import Location


class LocationRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, location_id):
        return self.db.get(Location, location_id)

    def get_by_code(self, location_code: str, *, exclude_id=None):
        stmt = select(Location).where(func.upper(Location.location_code) == location_code.upper())
        if exclude_id is not None:
            stmt = stmt.where(Location.id != exclude_id)
        return self.db.execute(stmt).scalars().first()

    def list_locations(
        self,
        *,
        include_inactive: bool = False,
        location_type: str | None = None,
        search: str | None = None,
    ) -> list[Location]:
        stmt = select(Location)
        if not include_inactive:
            stmt = stmt.where(Location.is_active.is_(True))
        if location_type:
            stmt = stmt.where(Location.location_type == location_type)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    Location.location_name.ilike(pattern),
                    Location.location_code.ilike(pattern),
                    Location.city.ilike(pattern),
                )
            )
        stmt = stmt.order_by(Location.location_name.asc())
        return self.db.execute(stmt).scalars().all()

    def add(self, location: Location) -> Location:
        self.db.add(location)
        self.db.flush()
        return location

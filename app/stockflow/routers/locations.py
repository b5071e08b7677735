from fastapi import APIRouter, Depends

from app.stockflow.core.deps import get_current_caller, require_request_context
from app.stockflow.db.session import get_db
from app.stockflow.schemas.errors import ERROR_RESPONSES
from app.stockflow.schemas.locations import (
    LocationCreateRequest,
    LocationListResponse,
    LocationResponse,
    LocationStats,
    LocationUpdateRequest,
)
from app.stockflow.services.locations import LocationService

router = APIRouter(dependencies=[Depends(require_request_context)], responses=ERROR_RESPONSES)

_REQUIRED_FIELDS = {"location_name", "location_code", "location_type"}


@router.post("/stockflow/locations", response_model=LocationResponse, status_code=201)
def create_location(
    payload: LocationCreateRequest,
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    location = LocationService(db).create_location(
        actor=caller.user_ref,
        location_name=payload.location_name,
        location_code=payload.location_code,
        location_type=payload.location_type,
        **payload.model_dump(exclude=_REQUIRED_FIELDS),
    )
    return LocationResponse.model_validate(location)


@router.get("/stockflow/locations", response_model=LocationListResponse)
def list_locations(
    include_inactive: bool = False,
    location_type: str | None = None,
    search: str | None = None,
    _caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    rows, stats = LocationService(db).list_locations(
        include_inactive=include_inactive,
        location_type=location_type,
        search=search,
    )
    return LocationListResponse(
        locations=[LocationResponse.model_validate(row) for row in rows],
        stats=LocationStats(**stats),
    )


@router.get("/stockflow/locations/{location_id}", response_model=LocationResponse)
def get_location(location_id: str, _caller=Depends(get_current_caller), db=Depends(get_db)):
    return LocationResponse.model_validate(LocationService(db).get_location(location_id))


@router.patch("/stockflow/locations/{location_id}", response_model=LocationResponse)
def update_location(
    location_id: str,
    payload: LocationUpdateRequest,
    _caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    location = LocationService(db).update_location(location_id, payload.model_dump(exclude_unset=True))
    return LocationResponse.model_validate(location)


@router.delete("/stockflow/locations/{location_id}", response_model=LocationResponse)
def deactivate_location(location_id: str, _caller=Depends(get_current_caller), db=Depends(get_db)):
    return LocationResponse.model_validate(LocationService(db).deactivate_location(location_id))

from fastapi import APIRouter, Depends

from app.stockflow.core.deps import get_current_caller, require_request_context
from app.stockflow.db.models import RoleGrant
from app.stockflow.db.session import get_db
from app.stockflow.schemas.errors import ERROR_RESPONSES
from app.stockflow.schemas.roles import (
    MyRolesResponse,
    RoleGrantCreateRequest,
    RoleGrantListResponse,
    RoleGrantResponse,
)
from app.stockflow.services.authorization import TransferRole
from app.stockflow.services.roles import RoleService

router = APIRouter(dependencies=[Depends(require_request_context)], responses=ERROR_RESPONSES)


def _grant_response(grant: RoleGrant) -> RoleGrantResponse:
    location = grant.location
    return RoleGrantResponse(
        id=grant.id,
        user_ref=grant.user_ref,
        location_id=grant.location_id,
        location_name=location.location_name if location else None,
        location_code=location.location_code if location else None,
        location_type=location.location_type if location else None,
        role=grant.role,
        is_active=grant.is_active,
        assigned_by=grant.assigned_by,
        created_at=grant.created_at,
        updated_at=grant.updated_at,
    )


@router.post("/stockflow/roles", response_model=RoleGrantResponse, status_code=201)
def grant_role(payload: RoleGrantCreateRequest, caller=Depends(get_current_caller), db=Depends(get_db)):
    grant = RoleService(db).grant_role(
        user_ref=payload.user_ref,
        location_id=payload.location_id,
        role=payload.role,
        assigned_by=caller.user_ref,
    )
    return _grant_response(grant)


@router.get("/stockflow/roles", response_model=RoleGrantListResponse)
def list_role_grants(
    location_id: str | None = None,
    user_ref: str | None = None,
    _caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    grants = RoleService(db).list_grants(location_id=location_id, user_ref=user_ref)
    return RoleGrantListResponse(grants=[_grant_response(grant) for grant in grants])


@router.get("/stockflow/roles/me", response_model=MyRolesResponse)
def my_roles(caller=Depends(get_current_caller), db=Depends(get_db)):
    grants = RoleService(db).list_grants(user_ref=caller.user_ref)
    held = {grant.role for grant in grants}
    return MyRolesResponse(
        user_ref=caller.user_ref,
        grants=[_grant_response(grant) for grant in grants],
        is_store_manager=TransferRole.STORE_MANAGER.value in held,
        is_warehouse_manager=TransferRole.WAREHOUSE_MANAGER.value in held,
    )


@router.delete("/stockflow/roles/{grant_id}", response_model=RoleGrantResponse)
def revoke_role(grant_id: str, _caller=Depends(get_current_caller), db=Depends(get_db)):
    return _grant_response(RoleService(db).revoke_role(grant_id))

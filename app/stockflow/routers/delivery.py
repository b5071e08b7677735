from fastapi import APIRouter, Depends

from app.stockflow.core.deps import get_current_caller, require_request_context
from app.stockflow.db.session import get_db
from app.stockflow.schemas.delivery import (
    DeliveryAssignmentCreateRequest,
    DeliveryAssignmentListResponse,
    DeliveryAssignmentResponse,
    DeliveryUpdateRequest,
    DeliveryUpdateResponse,
)
from app.stockflow.schemas.errors import ERROR_RESPONSES
from app.stockflow.services.delivery import DeliveryService

router = APIRouter(dependencies=[Depends(require_request_context)], responses=ERROR_RESPONSES)


@router.get("/stockflow/transfers/{transfer_id}/delivery", response_model=DeliveryAssignmentListResponse)
def list_delivery_assignments(transfer_id: str, _caller=Depends(get_current_caller), db=Depends(get_db)):
    assignments = DeliveryService(db).list_assignments(transfer_id)
    return DeliveryAssignmentListResponse(
        assignments=[DeliveryAssignmentResponse.model_validate(assignment) for assignment in assignments]
    )


@router.post(
    "/stockflow/transfers/{transfer_id}/delivery",
    response_model=DeliveryAssignmentResponse,
    status_code=201,
)
def assign_delivery(
    transfer_id: str,
    payload: DeliveryAssignmentCreateRequest,
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    assignment = DeliveryService(db).assign_delivery(transfer_id, payload, actor=caller.user_ref)
    return DeliveryAssignmentResponse.model_validate(assignment)


@router.patch(
    "/stockflow/transfers/{transfer_id}/delivery/{assignment_id}",
    response_model=DeliveryUpdateResponse,
)
def update_delivery(
    transfer_id: str,
    assignment_id: str,
    payload: DeliveryUpdateRequest,
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    assignment, transfer = DeliveryService(db).update_delivery(
        transfer_id,
        assignment_id,
        payload,
        actor=caller.user_ref,
    )
    return DeliveryUpdateResponse(
        assignment=DeliveryAssignmentResponse.model_validate(assignment),
        transfer_status=transfer.status,
    )

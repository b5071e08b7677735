from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from app.stockflow.core.deps import get_current_caller, require_request_context
from app.stockflow.db.models import Transfer, TransferItem
from app.stockflow.db.session import get_db
from app.stockflow.schemas.delivery import DeliveryAssignmentResponse
from app.stockflow.schemas.errors import ERROR_RESPONSES
from app.stockflow.schemas.packing import PackingTaskResponse
from app.stockflow.schemas.transfers import (
    StatusLogEntryResponse,
    TransferApprovalRequest,
    TransferCancelRequest,
    TransferCreateRequest,
    TransferDeletedResponse,
    TransferDetailResponse,
    TransferItemResponse,
    TransferListResponse,
    TransferResponse,
    TransferStats,
    TransferTab,
    TransferUpdateRequest,
)
from app.stockflow.services.transfers import TransferService

router = APIRouter(dependencies=[Depends(require_request_context)], responses=ERROR_RESPONSES)


def _transfer_response(transfer: Transfer, items: list[TransferItem] | None = None) -> TransferResponse:
    response = TransferResponse.model_validate(transfer)
    if items is not None:
        response.items = [TransferItemResponse.model_validate(item) for item in items]
    return response


@router.get("/stockflow/transfers", response_model=TransferListResponse)
def list_transfers(
    status: str | None = None,
    tab: TransferTab = "all",
    search: str | None = None,
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    service = TransferService(db)
    rows, stats = service.list_transfers(caller_ref=caller.user_ref, status=status, tab=tab, search=search)
    items_by_transfer = service.repo.get_items_for_transfers([row.id for row in rows])
    return TransferListResponse(
        transfers=[_transfer_response(row, items_by_transfer.get(row.id, [])) for row in rows],
        stats=TransferStats(**stats),
    )


@router.post("/stockflow/transfers", response_model=TransferResponse, status_code=201)
def create_transfer(payload: TransferCreateRequest, caller=Depends(get_current_caller), db=Depends(get_db)):
    service = TransferService(db)
    transfer = service.create_transfer(payload, actor=caller.user_ref)
    return _transfer_response(transfer, service.repo.get_items(transfer.id))


@router.get("/stockflow/transfers/{transfer_id}", response_model=TransferDetailResponse)
def get_transfer_detail(transfer_id: str, _caller=Depends(get_current_caller), db=Depends(get_db)):
    detail = TransferService(db).get_detail(transfer_id)
    return TransferDetailResponse(
        transfer=_transfer_response(detail.transfer, detail.items),
        items=[TransferItemResponse.model_validate(item) for item in detail.items],
        status_log=[StatusLogEntryResponse.model_validate(entry) for entry in detail.status_log],
        packing_tasks=[PackingTaskResponse.model_validate(task) for task in detail.packing_tasks],
        delivery_assignments=[
            DeliveryAssignmentResponse.model_validate(assignment) for assignment in detail.delivery_assignments
        ],
    )


@router.patch("/stockflow/transfers/{transfer_id}", response_model=TransferResponse)
def update_transfer(
    transfer_id: str,
    payload: TransferUpdateRequest,
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    service = TransferService(db)
    transfer = service.update_transfer(transfer_id, payload, actor=caller.user_ref)
    return _transfer_response(transfer, service.repo.get_items(transfer.id))


@router.delete("/stockflow/transfers/{transfer_id}", response_model=TransferDeletedResponse)
def delete_transfer(transfer_id: str, caller=Depends(get_current_caller), db=Depends(get_db)):
    transfer = TransferService(db).delete_transfer(transfer_id, actor=caller.user_ref)
    return TransferDeletedResponse(
        id=transfer.id,
        transfer_number=transfer.transfer_number,
        deleted_at=transfer.deleted_at,
    )


@router.post("/stockflow/transfers/{transfer_id}/approve", response_model=TransferResponse)
def approve_or_reject_transfer(
    transfer_id: str,
    payload: TransferApprovalRequest,
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    service = TransferService(db)
    transfer = service.approve_or_reject(transfer_id, payload, actor=caller.user_ref)
    return _transfer_response(transfer, service.repo.get_items(transfer.id))


@router.post("/stockflow/transfers/{transfer_id}/cancel", response_model=TransferResponse)
def cancel_transfer(
    transfer_id: str,
    payload: TransferCancelRequest | None = Body(default=None),
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    service = TransferService(db)
    transfer = service.cancel_transfer(
        transfer_id,
        actor=caller.user_ref,
        notes=payload.notes if payload else None,
    )
    return _transfer_response(transfer, service.repo.get_items(transfer.id))

from fastapi import APIRouter, Depends

from app.stockflow.core.deps import get_current_caller, require_request_context
from app.stockflow.db.session import get_db
from app.stockflow.schemas.errors import ERROR_RESPONSES
from app.stockflow.schemas.packing import (
    PackingTaskCreateRequest,
    PackingTaskListResponse,
    PackingTaskResponse,
    PackingTaskUpdateRequest,
    PackingTaskUpdateResponse,
)
from app.stockflow.services.packing import PackingService

router = APIRouter(dependencies=[Depends(require_request_context)], responses=ERROR_RESPONSES)


@router.get("/stockflow/transfers/{transfer_id}/packing", response_model=PackingTaskListResponse)
def list_packing_tasks(transfer_id: str, _caller=Depends(get_current_caller), db=Depends(get_db)):
    tasks = PackingService(db).list_tasks(transfer_id)
    return PackingTaskListResponse(tasks=[PackingTaskResponse.model_validate(task) for task in tasks])


@router.post("/stockflow/transfers/{transfer_id}/packing", response_model=PackingTaskResponse, status_code=201)
def assign_packing_task(
    transfer_id: str,
    payload: PackingTaskCreateRequest,
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    task = PackingService(db).assign_task(transfer_id, payload, actor=caller.user_ref)
    return PackingTaskResponse.model_validate(task)


@router.patch(
    "/stockflow/transfers/{transfer_id}/packing/{task_id}",
    response_model=PackingTaskUpdateResponse,
)
def update_packing_task(
    transfer_id: str,
    task_id: str,
    payload: PackingTaskUpdateRequest,
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    task, transfer = PackingService(db).update_task(transfer_id, task_id, payload, actor=caller.user_ref)
    return PackingTaskUpdateResponse(
        task=PackingTaskResponse.model_validate(task),
        transfer_status=transfer.status,
    )

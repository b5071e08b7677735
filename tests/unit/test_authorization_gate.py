import uuid
from types import SimpleNamespace

import pytest

from app.stockflow.core.error_catalog import AuthorizationError
from app.stockflow.core.metrics import metrics
from app.stockflow.services.authorization import (
    ApprovalCapacity,
    RoleSet,
    authorize_approve,
    authorize_assignment_update,
    authorize_cancel,
    can_approve,
    can_delete,
    can_edit,
    can_reject,
)

SOURCE = uuid.uuid4()
DESTINATION = uuid.uuid4()
ELSEWHERE = uuid.uuid4()


def _transfer(status="requested", requested_by="requester"):
    return SimpleNamespace(
        id=uuid.uuid4(),
        status=status,
        source_location_id=SOURCE,
        destination_location_id=DESTINATION,
        requested_by=requested_by,
    )


def test_role_set_ignores_inactive_grants():
    grants = [
        SimpleNamespace(location_id=SOURCE, role="store_manager", is_active=True),
        SimpleNamespace(location_id=DESTINATION, role="warehouse_manager", is_active=False),
    ]
    roles = RoleSet.from_grants(grants)
    assert roles.has(str(SOURCE), "store_manager")
    assert not roles.has(DESTINATION, "warehouse_manager")
    assert roles.locations_with("store_manager") == {str(SOURCE)}


def test_approve_capacity_on_requested():
    assert can_approve(RoleSet.from_pairs([(SOURCE, "warehouse_manager")]), _transfer()) is (
        ApprovalCapacity.AS_WAREHOUSE_MANAGER
    )
    assert can_approve(RoleSet.from_pairs([(SOURCE, "store_manager")]), _transfer()) is (
        ApprovalCapacity.AS_STORE_MANAGER
    )
    assert can_approve(RoleSet.from_pairs([(DESTINATION, "store_manager")]), _transfer()) is ApprovalCapacity.NONE


def test_store_approved_accepts_destination_warehouse_manager():
    transfer = _transfer(status="store_approved")
    assert can_approve(RoleSet.from_pairs([(DESTINATION, "warehouse_manager")]), transfer) is (
        ApprovalCapacity.AS_WAREHOUSE_MANAGER
    )
    assert can_approve(RoleSet.from_pairs([(SOURCE, "store_manager")]), transfer) is ApprovalCapacity.NONE


def test_reject_rules():
    transfer = _transfer(status="store_approved")
    assert can_reject(RoleSet.from_pairs([(SOURCE, "store_manager")]), transfer)
    assert can_reject(RoleSet.from_pairs([(DESTINATION, "warehouse_manager")]), transfer)
    assert not can_reject(RoleSet.from_pairs([(DESTINATION, "store_manager")]), transfer)
    assert not can_reject(RoleSet.from_pairs([(SOURCE, "store_manager")]), _transfer(status="packing"))


def test_edit_and_delete_rules():
    roles = RoleSet.from_pairs([(ELSEWHERE, "warehouse_manager")])
    assert can_edit(RoleSet(), "requester", _transfer())
    assert not can_edit(roles, "someone", _transfer())
    assert can_edit(RoleSet.from_pairs([(SOURCE, "store_manager")]), "someone", _transfer())
    assert not can_edit(RoleSet(), "requester", _transfer(status="store_approved"))
    assert can_delete(RoleSet(), "requester", _transfer(status="rejected"))
    assert not can_delete(RoleSet(), "requester", _transfer(status="packing"))


def test_denial_raises_and_counts():
    metrics.reset()
    with pytest.raises(AuthorizationError) as excinfo:
        authorize_approve(RoleSet(), "nobody", _transfer())
    assert excinfo.value.details["action"] == "approve"
    assert "store_manager or warehouse_manager at the source" in excinfo.value.message

    with pytest.raises(AuthorizationError):
        authorize_cancel("someone-else", _transfer())

    if metrics.enabled:
        content = metrics.render().content.decode("utf-8")
        assert 'authorization_denied_total{action="approve"} 1.0' in content


def test_assignment_update_requires_assignee():
    assignment = SimpleNamespace(id=uuid.uuid4(), assigned_to="packer-1")
    authorize_assignment_update("packer-1", assignment, kind="packing_task")
    with pytest.raises(AuthorizationError) as excinfo:
        authorize_assignment_update("packer-2", assignment, kind="packing_task")
    assert excinfo.value.details["action"] == "update_packing_task"

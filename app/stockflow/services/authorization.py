"""Authorization gate for transfer actions.

The ``can_*`` functions are pure decisions over a caller's active role grants
and a transfer; the ``authorize_*`` wrappers turn a negative decision into an
``AuthorizationError`` and are the only place that error is raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from app.stockflow.core.error_catalog import AuthorizationError
from app.stockflow.core.logging import log_event
from app.stockflow.core.metrics import metrics

logger = logging.getLogger("stockflow.authorization")


class TransferRole(str, Enum):
    STORE_MANAGER = "store_manager"
    WAREHOUSE_MANAGER = "warehouse_manager"
    PACKING_TEAM = "packing_team"
    LOGISTICS_TEAM = "logistics_team"
    LOGISTICS_MANAGER = "logistics_manager"
    LINEMAN = "lineman"


MANAGER_ROLES = frozenset({TransferRole.STORE_MANAGER.value, TransferRole.WAREHOUSE_MANAGER.value})


class ApprovalCapacity(str, Enum):
    NONE = "none"
    AS_STORE_MANAGER = "as_store_manager"
    AS_WAREHOUSE_MANAGER = "as_warehouse_manager"


def _key(location_id) -> str:
    return str(location_id)


@dataclass(frozen=True)
class RoleSet:
    """Active ``(location, role)`` pairs held by one caller."""

    grants: frozenset = frozenset()

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple]) -> "RoleSet":
        return cls(frozenset((_key(location_id), role) for location_id, role in pairs))

    @classmethod
    def from_grants(cls, grants) -> "RoleSet":
        return cls.from_pairs((grant.location_id, grant.role) for grant in grants if grant.is_active)

    def has(self, location_id, role: str | TransferRole) -> bool:
        role_value = role.value if isinstance(role, TransferRole) else role
        return (_key(location_id), role_value) in self.grants

    def is_manager_at(self, location_id) -> bool:
        return any(self.has(location_id, role) for role in MANAGER_ROLES)

    def locations_with(self, role: str | TransferRole) -> set[str]:
        role_value = role.value if isinstance(role, TransferRole) else role
        return {location_id for location_id, held in self.grants if held == role_value}


def can_approve(roles: RoleSet, transfer) -> ApprovalCapacity:
    source = transfer.source_location_id
    if transfer.status == "requested":
        if roles.has(source, TransferRole.WAREHOUSE_MANAGER):
            return ApprovalCapacity.AS_WAREHOUSE_MANAGER
        if roles.has(source, TransferRole.STORE_MANAGER):
            return ApprovalCapacity.AS_STORE_MANAGER
        return ApprovalCapacity.NONE
    if transfer.status == "store_approved":
        destination = transfer.destination_location_id
        if roles.has(source, TransferRole.WAREHOUSE_MANAGER) or roles.has(
            destination, TransferRole.WAREHOUSE_MANAGER
        ):
            return ApprovalCapacity.AS_WAREHOUSE_MANAGER
    return ApprovalCapacity.NONE


def can_reject(roles: RoleSet, transfer) -> bool:
    if transfer.status not in ("requested", "store_approved"):
        return False
    source = transfer.source_location_id
    destination = transfer.destination_location_id
    return (
        roles.has(source, TransferRole.STORE_MANAGER)
        or roles.has(source, TransferRole.WAREHOUSE_MANAGER)
        or roles.has(destination, TransferRole.WAREHOUSE_MANAGER)
    )


def can_edit(roles: RoleSet, caller_ref: str, transfer) -> bool:
    if transfer.status != "requested":
        return False
    return transfer.requested_by == caller_ref or roles.is_manager_at(transfer.source_location_id)


def can_delete(roles: RoleSet, caller_ref: str, transfer) -> bool:
    if transfer.status not in ("requested", "rejected", "cancelled"):
        return False
    return transfer.requested_by == caller_ref or roles.is_manager_at(transfer.source_location_id)


def can_cancel(caller_ref: str, transfer) -> bool:
    return transfer.requested_by == caller_ref


def can_update_assignment(caller_ref: str, assignment) -> bool:
    return assignment.assigned_to == caller_ref


def _deny(action: str, caller_ref: str, subject_id, message: str) -> AuthorizationError:
    metrics.increment_authorization_denied(action)
    log_event(
        logger,
        "authorization_denied",
        level=logging.WARNING,
        action=action,
        user_id=caller_ref,
        subject_id=str(subject_id),
    )
    return AuthorizationError(message, action=action)


def authorize_approve(roles: RoleSet, caller_ref: str, transfer) -> ApprovalCapacity:
    capacity = can_approve(roles, transfer)
    if capacity is ApprovalCapacity.NONE:
        if transfer.status == "store_approved":
            message = "approving a store_approved transfer requires warehouse_manager at the source or destination"
        else:
            message = "approving a requested transfer requires store_manager or warehouse_manager at the source"
        raise _deny("approve", caller_ref, transfer.id, message)
    return capacity


def authorize_reject(roles: RoleSet, caller_ref: str, transfer) -> None:
    if not can_reject(roles, transfer):
        raise _deny(
            "reject",
            caller_ref,
            transfer.id,
            "rejecting requires store_manager at the source or warehouse_manager at the source or destination",
        )


def authorize_edit(roles: RoleSet, caller_ref: str, transfer) -> None:
    if not can_edit(roles, caller_ref, transfer):
        raise _deny(
            "edit",
            caller_ref,
            transfer.id,
            "only the requester or a manager at the source location can edit this transfer",
        )


def authorize_delete(roles: RoleSet, caller_ref: str, transfer) -> None:
    if not can_delete(roles, caller_ref, transfer):
        raise _deny(
            "delete",
            caller_ref,
            transfer.id,
            "only the requester or a manager at the source location can delete this transfer",
        )


def authorize_cancel(caller_ref: str, transfer) -> None:
    if not can_cancel(caller_ref, transfer):
        raise _deny("cancel", caller_ref, transfer.id, "only the requester can cancel a transfer")


def authorize_assignment_update(caller_ref: str, assignment, *, kind: str) -> None:
    if not can_update_assignment(caller_ref, assignment):
        raise _deny(
            f"update_{kind}",
            caller_ref,
            assignment.id,
            f"only the assignee can update this {kind.replace('_', ' ')}",
        )

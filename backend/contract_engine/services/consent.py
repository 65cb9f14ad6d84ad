"""Cancellation consent protocol — bilateral cancellation of signed contracts.

Either party may open a request; only the *other* party can confirm or reject
it. The requester may withdraw its own request. None of these steps creates a
content version: cancellation metadata is structural.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from contract_engine.config import settings
from contract_engine.exceptions import AlreadyRequested, InvalidTransition, SelfConfirmationForbidden, ValidationError
from contract_engine.models.contract import Contract, ContractStatus, ActorRole
from contract_engine.models.contract_transition import Operation
from contract_engine.services import state_machine
from contract_engine.services.contract_service import load_contract, transaction, announce

logger = logging.getLogger(__name__)


def _requester_of(contract: Contract) -> Optional[ActorRole]:
    """Party that opened the pending request, from the status (authoritative) or the column."""
    for role, requested_state in state_machine.REQUESTED_BY.items():
        if contract.status == requested_state:
            return role
    return contract.cancellation_requested_by


def _finish(db: Session, contract: Contract) -> Contract:
    db.refresh(contract)
    announce(contract.contract_id, contract.subject_id, contract.status, contract.current_version)
    return contract


def request_cancellation(
    db: Session,
    contract_id: str,
    actor_role: ActorRole,
    reason: str,
    actor_id: Optional[str] = None,
) -> Contract:
    """SIGNED -> CANCELLATION_REQUESTED_BY_<actor>."""
    contract = load_contract(db, contract_id)
    requester = _requester_of(contract)
    if contract.status in state_machine.CANCELLATION_REQUESTED:
        if requester == actor_role:
            raise AlreadyRequested(
                f"{actor_role.value} already requested cancellation of contract {contract_id}",
                current_status=contract.status.value,
                operation=Operation.request_cancel.value,
            )
        raise InvalidTransition(
            contract.status.value,
            Operation.request_cancel.value,
            f"{requester.value} already requested cancellation; confirm or reject that request instead",
        )

    reason = (reason or "").strip()
    minimum = settings.CANCELLATION_REASON_MIN_LENGTH
    if contract.status == ContractStatus.signed and len(reason) < minimum:
        raise ValidationError(
            f"Cancellation reason must be at least {minimum} characters",
            current_status=contract.status.value,
            operation=Operation.request_cancel.value,
        )

    with transaction(db):
        state_machine.transition(
            db, contract, Operation.request_cancel, actor_role, actor_id,
            reason=reason,
            cancellation_reason=reason,
            cancellation_requested_by=actor_role,
            cancellation_requested_at=state_machine.utcnow(),
        )
    logger.info("Cancellation of contract %s requested by %s", contract_id, actor_role.value)
    return _finish(db, contract)


def _check_other_party(contract: Contract, actor_role: ActorRole, operation: Operation) -> None:
    if contract.status not in state_machine.CANCELLATION_REQUESTED:
        # Let the state machine report the precise illegal transition
        state_machine.resolve_transition(contract.status, operation, actor_role)
    if _requester_of(contract) == actor_role:
        raise SelfConfirmationForbidden(
            f"{actor_role.value} requested this cancellation and cannot {operation.value.replace('_cancel', '')} it; "
            f"{state_machine.other_party(actor_role).value} must respond",
            current_status=contract.status.value,
            operation=operation.value,
        )


def confirm_cancellation(
    db: Session,
    contract_id: str,
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
) -> Contract:
    """CANCELLATION_REQUESTED_BY_X -> CANCELLED, by the party that is not X."""
    contract = load_contract(db, contract_id)
    _check_other_party(contract, actor_role, Operation.confirm_cancel)
    with transaction(db):
        state_machine.transition(
            db, contract, Operation.confirm_cancel, actor_role, actor_id,
            reason=contract.cancellation_reason,
            cancelled_at=state_machine.utcnow(),
        )
    logger.info("Contract %s cancelled by mutual consent (confirmed by %s)", contract_id, actor_role.value)
    return _finish(db, contract)


def reject_cancellation(
    db: Session,
    contract_id: str,
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
) -> Contract:
    """CANCELLATION_REQUESTED_BY_X -> SIGNED, by the party that is not X; clears the request."""
    contract = load_contract(db, contract_id)
    _check_other_party(contract, actor_role, Operation.reject_cancel)
    with transaction(db):
        state_machine.transition(
            db, contract, Operation.reject_cancel, actor_role, actor_id,
            reason=contract.cancellation_reason,
            cancellation_reason=None,
            cancellation_requested_by=None,
            cancellation_requested_at=None,
        )
    logger.info("Cancellation request on contract %s rejected by %s", contract_id, actor_role.value)
    return _finish(db, contract)


def withdraw_cancellation(
    db: Session,
    contract_id: str,
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
) -> Contract:
    """CANCELLATION_REQUESTED_BY_X -> SIGNED, by X itself."""
    contract = load_contract(db, contract_id)
    with transaction(db):
        state_machine.transition(
            db, contract, Operation.withdraw_cancel, actor_role, actor_id,
            reason=contract.cancellation_reason,
            cancellation_reason=None,
            cancellation_requested_by=None,
            cancellation_requested_at=None,
        )
    logger.info("Cancellation request on contract %s withdrawn by %s", contract_id, actor_role.value)
    return _finish(db, contract)

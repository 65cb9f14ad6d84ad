"""Contract state machine — the only writer of ``Contract.status``.

Responsibilities:
- Transition table: which operation is legal from which status, for which party
- Guarded writes: conditional UPDATE on (current_version, status) read at the
  start of the operation; losing writers get a typed error instead of a lost update
- Transition ledger: one immutable ContractTransition row per committed operation
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from contract_engine.exceptions import (
    ActorNotAllowed,
    ConcurrentVersionConflict,
    ContractError,
    InvalidTransition,
    NotFound,
)
from contract_engine.models.contract import Contract, ContractStatus, ActorRole
from contract_engine.models.contract_transition import ContractTransition, Operation
from contract_engine.models.contract_version import ContractVersion

logger = logging.getLogger(__name__)

OWNER = ActorRole.owner
COUNTERPARTY = ActorRole.counterparty

REQUESTED_BY = {
    OWNER: ContractStatus.cancellation_requested_by_owner,
    COUNTERPARTY: ContractStatus.cancellation_requested_by_counterparty,
}

# (status, operation) -> {actor: target status}; a None target removes the contract
TRANSITIONS: dict[tuple[ContractStatus, Operation], dict[ActorRole, Optional[ContractStatus]]] = {
    (ContractStatus.draft, Operation.edit): {OWNER: ContractStatus.draft},
    (ContractStatus.draft, Operation.regenerate): {OWNER: ContractStatus.draft},
    (ContractStatus.draft, Operation.publish): {OWNER: ContractStatus.published},
    (ContractStatus.draft, Operation.delete): {OWNER: None},
    (ContractStatus.published, Operation.edit): {OWNER: ContractStatus.published},
    (ContractStatus.published, Operation.regenerate): {OWNER: ContractStatus.published},
    (ContractStatus.published, Operation.delete): {OWNER: None},
    (ContractStatus.published, Operation.sign): {COUNTERPARTY: ContractStatus.signed},
    (ContractStatus.signed, Operation.request_cancel): dict(REQUESTED_BY),
}

for _requester, _requested_state in REQUESTED_BY.items():
    _other = COUNTERPARTY if _requester == OWNER else OWNER
    TRANSITIONS[(_requested_state, Operation.confirm_cancel)] = {_other: ContractStatus.cancelled}
    TRANSITIONS[(_requested_state, Operation.reject_cancel)] = {_other: ContractStatus.signed}
    TRANSITIONS[(_requested_state, Operation.withdraw_cancel)] = {_requester: ContractStatus.signed}

CANCELLATION_REQUESTED = frozenset(REQUESTED_BY.values())
READ_ONLY = frozenset({ContractStatus.signed, ContractStatus.cancelled}) | CANCELLATION_REQUESTED


def check_generate(actor_role: ActorRole) -> ContractStatus:
    """Only the owner creates contracts; they always start in DRAFT."""
    if actor_role != OWNER:
        raise ActorNotAllowed("NONE", Operation.generate.value, "Only OWNER may generate a contract")
    return ContractStatus.draft


def other_party(actor_role: ActorRole) -> ActorRole:
    return COUNTERPARTY if actor_role == OWNER else OWNER


def allowed_operations(status: ContractStatus, actor_role: Optional[ActorRole] = None) -> list[Operation]:
    """Operations legal from ``status`` (optionally only those ``actor_role`` may perform)."""
    return [
        op
        for (from_status, op), actors in TRANSITIONS.items()
        if from_status == status and (actor_role is None or actor_role in actors)
    ]


def resolve_transition(
    status: ContractStatus,
    operation: Operation,
    actor_role: ActorRole,
) -> Optional[ContractStatus]:
    """Return the target status for ``operation``, or raise if it is not legal."""
    rule = TRANSITIONS.get((status, operation))
    if rule is None:
        if status in READ_ONLY and operation in (Operation.edit, Operation.regenerate, Operation.delete):
            message = f"Contract is read-only once signed (status {status.value}); cannot {operation.value}"
        else:
            allowed = ", ".join(op.value for op in allowed_operations(status)) or "none"
            message = f"Cannot {operation.value} a contract in status {status.value} (allowed: {allowed})"
        raise InvalidTransition(status.value, operation.value, message)
    if actor_role not in rule:
        permitted = " or ".join(role.value for role in rule)
        raise ActorNotAllowed(
            status.value,
            operation.value,
            f"Only {permitted} may {operation.value} a contract in status {status.value}",
        )
    return rule[actor_role]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _conflict(db: Session, contract_id: str, read_version: int, operation: Operation) -> ContractError:
    """Explain why a guarded write matched no row."""
    row = db.execute(
        select(Contract.current_version, Contract.status).where(Contract.contract_id == contract_id)
    ).first()
    if row is None:
        return NotFound(f"Contract {contract_id} no longer exists", operation=operation.value)
    current_version, current_status = row
    if current_version != read_version:
        return ConcurrentVersionConflict(
            f"Contract {contract_id} moved from version {read_version} to {current_version}. Re-fetch and retry.",
            current_status=current_status.value,
            operation=operation.value,
        )
    return InvalidTransition(
        current_status.value,
        operation.value,
        f"Contract {contract_id} changed status to {current_status.value} concurrently; cannot {operation.value}",
    )


def guarded_update(
    db: Session,
    contract_id: str,
    *,
    read_version: int,
    read_status: ContractStatus,
    operation: Operation,
    **values: Any,
) -> None:
    """UPDATE the contract only if version and status are still what was read."""
    values.setdefault("updated_at", utcnow())
    result = db.execute(
        update(Contract)
        .where(
            Contract.contract_id == contract_id,
            Contract.current_version == read_version,
            Contract.status == read_status,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        error = _conflict(db, contract_id, read_version, operation)
        logger.info("Guarded %s on contract %s rejected: %s", operation.value, contract_id, error.message)
        raise error


def record_transition(
    db: Session,
    contract_id: str,
    operation: Operation,
    *,
    from_status: Optional[ContractStatus],
    to_status: ContractStatus,
    from_version: int,
    to_version: int,
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> ContractTransition:
    """Append a row to the transition ledger (same transaction as the write)."""
    last = db.execute(
        select(func.max(ContractTransition.sequence)).where(ContractTransition.contract_id == contract_id)
    ).scalar()
    entry = ContractTransition(
        contract_id=contract_id,
        sequence=(last or 0) + 1,
        operation=operation,
        from_status=from_status.value if from_status else None,
        to_status=to_status.value,
        from_version=from_version,
        to_version=to_version,
        actor_role=actor_role,
        actor_id=actor_id,
        reason=reason,
        created_at=utcnow(),
    )
    db.add(entry)
    return entry


def transition(
    db: Session,
    contract: Contract,
    operation: Operation,
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
    *,
    reason: Optional[str] = None,
    **values: Any,
) -> ContractStatus:
    """Move ``contract`` to the status ``operation`` leads to. Does not commit."""
    read_status = contract.status
    read_version = contract.current_version
    target = resolve_transition(read_status, operation, actor_role)
    if target is None:
        raise InvalidTransition(read_status.value, operation.value, f"{operation.value} removes the contract; use remove()")

    guarded_update(
        db,
        contract.contract_id,
        read_version=read_version,
        read_status=read_status,
        operation=operation,
        status=target,
        **values,
    )
    record_transition(
        db,
        contract.contract_id,
        operation,
        from_status=read_status,
        to_status=target,
        from_version=read_version,
        to_version=read_version,
        actor_role=actor_role,
        actor_id=actor_id,
        reason=reason,
    )
    logger.info(
        "Contract %s: %s by %s (%s -> %s)",
        contract.contract_id, operation.value, actor_role.value, read_status.value, target.value,
    )
    return target


def remove(db: Session, contract: Contract, actor_role: ActorRole) -> None:
    """Delete an unsigned contract together with its versions and ledger. Does not commit."""
    read_status = contract.status
    read_version = contract.current_version
    resolve_transition(read_status, Operation.delete, actor_role)

    contract_id = contract.contract_id
    db.execute(delete(ContractTransition).where(ContractTransition.contract_id == contract_id))
    db.execute(delete(ContractVersion).where(ContractVersion.contract_id == contract_id))
    result = db.execute(
        delete(Contract)
        .where(
            Contract.contract_id == contract_id,
            Contract.current_version == read_version,
            Contract.status == read_status,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise _conflict(db, contract_id, read_version, Operation.delete)
    logger.info("Contract %s deleted by %s (was %s)", contract_id, actor_role.value, read_status.value)

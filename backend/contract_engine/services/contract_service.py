"""Core contract service — every lifecycle write goes through here.

Responsibilities:
- One transaction per operation: load, validate, write, commit (rollback on any error)
- Transition legality via the state machine, content history via the version store
- One active contract per subject (check at creation, unique index as backstop)
- Change notification after commit, never inside the write transaction
"""
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from contract_engine.exceptions import ActiveDocumentExists, ConcurrentVersionConflict, NotFound, ValidationError
from contract_engine.models.contract import Contract, ContractStatus, ActorRole
from contract_engine.models.contract_transition import ContractTransition, Operation
from contract_engine.models.contract_version import ChangeType
from contract_engine.services import state_machine, template_store, version_store
from contract_engine.services.notifier import get_notifier
from contract_engine.services.renderer import substitute_variables

logger = logging.getLogger(__name__)

REGENERATE_CHANGE_TYPES = (ChangeType.auto_regenerate, ChangeType.template_update)


@contextmanager
def transaction(db: Session) -> Iterator[None]:
    """Commit on success, roll back on any error."""
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def announce(contract_id: str, subject_id: str, status: Optional[ContractStatus], version: int) -> None:
    """Best-effort change notification; never raises."""
    try:
        get_notifier().notify(contract_id, subject_id, status.value if status else None, version)
    except Exception:
        logger.exception("Failed to announce change of contract %s", contract_id)


def _announce_contract(contract: Contract) -> None:
    announce(contract.contract_id, contract.subject_id, contract.status, contract.current_version)


def load_contract(db: Session, contract_id: str) -> Contract:
    contract = db.query(Contract).filter(Contract.contract_id == contract_id).first()
    if not contract:
        raise NotFound(f"Contract {contract_id} not found")
    return contract


def _require_content(content: Optional[str], operation: Operation, status: ContractStatus = ContractStatus.draft) -> str:
    if content is None or not content.strip():
        raise ValidationError(
            "Contract content must not be empty",
            current_status=status.value,
            operation=operation.value,
        )
    return content


# ── Read model ─────────────────────────────────────────────────────


def get_contract(db: Session, contract_id: str) -> Contract:
    return load_contract(db, contract_id)


def find_active_contract(db: Session, subject_id: str) -> Optional[Contract]:
    return (
        db.query(Contract)
        .filter(Contract.subject_id == subject_id, Contract.status != ContractStatus.cancelled)
        .first()
    )


def get_active_contract(db: Session, subject_id: str) -> Contract:
    contract = find_active_contract(db, subject_id)
    if not contract:
        raise NotFound(f"No active contract for subject {subject_id}")
    return contract


def list_contracts(db: Session, subject_id: str, include_cancelled: bool = True) -> list[Contract]:
    """All contracts of a subject, newest first (active + cancelled history)."""
    query = db.query(Contract).filter(Contract.subject_id == subject_id)
    if not include_cancelled:
        query = query.filter(Contract.status != ContractStatus.cancelled)
    return query.order_by(Contract.created_at.desc()).all()


def list_transitions(db: Session, contract_id: str) -> list[ContractTransition]:
    load_contract(db, contract_id)
    return (
        db.query(ContractTransition)
        .filter(ContractTransition.contract_id == contract_id)
        .order_by(ContractTransition.sequence)
        .all()
    )


# ── Writes ─────────────────────────────────────────────────────────


def generate_contract(
    db: Session,
    subject_id: str,
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
    template_ref: Optional[str] = None,
    content: Optional[str] = None,
    data_context: Optional[Mapping[str, Any]] = None,
) -> Contract:
    """Create the subject's contract in DRAFT with version 1.

    Body comes from ``content`` when given, else from ``template_ref``, else from
    the default template. ``data_context`` pre-fills template variables.
    """
    state_machine.check_generate(actor_role)

    with transaction(db):
        existing = find_active_contract(db, subject_id)
        if existing:
            raise ActiveDocumentExists(
                f"Subject {subject_id} already has active contract {existing.contract_id} ({existing.status.value})",
                current_status=existing.status.value,
                operation=Operation.generate.value,
            )

        if content is not None:
            # Blank explicit content is rejected rather than replaced by a template
            body = _require_content(content, Operation.generate)
            change_type = ChangeType.manual_edit
        else:
            if template_ref:
                body = template_store.fetch_template(db, template_ref)
            else:
                default = template_store.get_default_template(db)
                template_ref, body = default.template_ref, default.content
            change_type = ChangeType.template_update
        if data_context:
            body = substitute_variables(body, data_context)
        body = _require_content(body, Operation.generate)

        contract = Contract(
            subject_id=subject_id,
            status=ContractStatus.draft,
            current_version=0,
            content="",
            template_ref=template_ref,
            created_by=actor_id,
        )
        db.add(contract)
        try:
            db.flush()
        except IntegrityError as exc:
            raise ActiveDocumentExists(
                f"Subject {subject_id} gained an active contract concurrently",
                operation=Operation.generate.value,
            ) from exc

        reason = f"Generated from template {template_ref}" if change_type == ChangeType.template_update else "Initial version"
        version_number = version_store.append_version(
            db, contract.contract_id, body, change_type, reason, actor_role, actor_id,
            expected_version=0, operation=Operation.generate,
        )
        state_machine.record_transition(
            db,
            contract.contract_id,
            Operation.generate,
            from_status=None,
            to_status=ContractStatus.draft,
            from_version=0,
            to_version=version_number,
            actor_role=actor_role,
            actor_id=actor_id,
            reason=reason,
        )
    db.refresh(contract)
    logger.info("Generated contract %s for subject %s (template %s)", contract.contract_id, subject_id, template_ref)
    _announce_contract(contract)
    return contract


def _write_content(
    db: Session,
    contract: Contract,
    operation: Operation,
    content: str,
    change_type: ChangeType,
    change_reason: Optional[str],
    actor_role: ActorRole,
    actor_id: Optional[str],
    expected_version: Optional[int],
) -> Contract:
    """Shared edit/regenerate path: new version, status unchanged."""
    read_status = contract.status
    read_version = contract.current_version
    with transaction(db):
        new_version = version_store.append_version(
            db, contract.contract_id, content, change_type, change_reason, actor_role, actor_id,
            expected_version=expected_version if expected_version is not None else read_version,
            operation=operation,
        )
        state_machine.record_transition(
            db,
            contract.contract_id,
            operation,
            from_status=read_status,
            to_status=read_status,
            from_version=read_version,
            to_version=new_version,
            actor_role=actor_role,
            actor_id=actor_id,
            reason=change_reason,
        )
    db.refresh(contract)
    logger.info("Contract %s now at version %d (%s)", contract.contract_id, contract.current_version, change_type.value)
    _announce_contract(contract)
    return contract


def edit_contract(
    db: Session,
    contract_id: str,
    content: str,
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
    change_type: ChangeType = ChangeType.manual_edit,
    change_reason: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Contract:
    """Replace the body of a DRAFT/PUBLISHED contract. Unchanged content is a no-op."""
    contract = load_contract(db, contract_id)
    state_machine.resolve_transition(contract.status, Operation.edit, actor_role)
    content = _require_content(content, Operation.edit, contract.status)
    if expected_version is not None and expected_version != contract.current_version:
        raise ConcurrentVersionConflict(
            f"Version mismatch: expected {expected_version}, contract is at {contract.current_version}. Re-fetch and retry.",
            current_status=contract.status.value,
            operation=Operation.edit.value,
        )
    if content == contract.content:
        logger.info("Edit of contract %s left content unchanged; no new version", contract_id)
        return contract
    return _write_content(
        db, contract, Operation.edit, content, change_type, change_reason, actor_role, actor_id, expected_version,
    )


def regenerate_contract(
    db: Session,
    contract_id: str,
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
    change_type: ChangeType = ChangeType.auto_regenerate,
    data_context: Optional[Mapping[str, Any]] = None,
    change_reason: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Contract:
    """Rebuild the body from the contract's template (after template or data changes)."""
    contract = load_contract(db, contract_id)
    state_machine.resolve_transition(contract.status, Operation.regenerate, actor_role)
    if change_type not in REGENERATE_CHANGE_TYPES:
        raise ValidationError(
            f"Regeneration must be recorded as {' or '.join(t.value for t in REGENERATE_CHANGE_TYPES)}",
            current_status=contract.status.value,
            operation=Operation.regenerate.value,
        )
    if not contract.template_ref:
        raise ValidationError(
            f"Contract {contract_id} was not generated from a template",
            current_status=contract.status.value,
            operation=Operation.regenerate.value,
        )
    body = template_store.fetch_template(db, contract.template_ref)
    if data_context:
        body = substitute_variables(body, data_context)
    body = _require_content(body, Operation.regenerate, contract.status)
    return _write_content(
        db, contract, Operation.regenerate, body, change_type,
        change_reason or f"Regenerated from template {contract.template_ref}",
        actor_role, actor_id, expected_version,
    )


def publish_contract(db: Session, contract_id: str, actor_role: ActorRole, actor_id: Optional[str] = None) -> Contract:
    contract = load_contract(db, contract_id)
    with transaction(db):
        _require_content(contract.content, Operation.publish, contract.status)
        state_machine.transition(db, contract, Operation.publish, actor_role, actor_id)
    db.refresh(contract)
    _announce_contract(contract)
    return contract


def sign_contract(db: Session, contract_id: str, actor_role: ActorRole, actor_id: Optional[str] = None) -> Contract:
    contract = load_contract(db, contract_id)
    with transaction(db):
        state_machine.transition(
            db, contract, Operation.sign, actor_role, actor_id,
            signed_at=state_machine.utcnow(),
            signed_by=actor_id,
        )
    db.refresh(contract)
    logger.info("Contract %s signed at %s", contract_id, contract.signed_at)
    _announce_contract(contract)
    return contract


def delete_contract(db: Session, contract_id: str, actor_role: ActorRole, actor_id: Optional[str] = None) -> None:
    """Hard-delete an unsigned contract (DRAFT or PUBLISHED)."""
    contract = load_contract(db, contract_id)
    subject_id = contract.subject_id
    version = contract.current_version
    with transaction(db):
        state_machine.remove(db, contract, actor_role)
    db.expunge(contract)
    logger.info("Contract %s of subject %s deleted by %s", contract_id, subject_id, actor_id or actor_role.value)
    announce(contract_id, subject_id, None, version)

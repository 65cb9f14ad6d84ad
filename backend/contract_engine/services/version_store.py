"""Version store — append-only log of contract content snapshots.

Numbering is dense and 1-based per contract. ``append_version`` advances
``Contract.current_version`` and ``Contract.content`` in the same transaction
as the insert, guarded by the version read at the start of the operation.
"""
import logging
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from contract_engine.exceptions import ConcurrentVersionConflict, NotFound
from contract_engine.models.contract import Contract, ActorRole
from contract_engine.models.contract_transition import Operation
from contract_engine.models.contract_version import ContractVersion, ChangeType
from contract_engine.services import state_machine

logger = logging.getLogger(__name__)


def append_version(
    db: Session,
    contract_id: str,
    content: str,
    change_type: ChangeType,
    reason: Optional[str],
    actor_role: ActorRole,
    actor_id: Optional[str] = None,
    *,
    expected_version: Optional[int] = None,
    operation: Operation = Operation.edit,
) -> int:
    """Insert the next version and make it the contract's current content.

    Does not commit. Raises ConcurrentVersionConflict if another writer advanced
    the contract past ``expected_version`` (or past what this session read).
    """
    contract = db.get(Contract, contract_id)
    if contract is None:
        raise NotFound(f"Contract {contract_id} not found", operation=operation.value)

    read_version = contract.current_version
    read_status = contract.status
    if expected_version is not None and expected_version != read_version:
        raise ConcurrentVersionConflict(
            f"Version mismatch: expected {expected_version}, contract is at {read_version}. Re-fetch and retry.",
            current_status=read_status.value,
            operation=operation.value,
        )

    next_number = read_version + 1
    state_machine.guarded_update(
        db,
        contract_id,
        read_version=read_version,
        read_status=read_status,
        operation=operation,
        content=content,
        current_version=next_number,
    )
    db.add(ContractVersion(
        contract_id=contract_id,
        version_number=next_number,
        content=content,
        status_at_time=read_status,
        change_type=change_type,
        change_reason=reason,
        created_by=actor_id,
        created_by_role=actor_role,
        created_at=datetime.now(timezone.utc),
    ))
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConcurrentVersionConflict(
            f"Version {next_number} of contract {contract_id} was written concurrently. Re-fetch and retry.",
            current_status=read_status.value,
            operation=operation.value,
        ) from exc

    logger.info("Appended version %d to contract %s (%s)", next_number, contract_id, change_type.value)
    return next_number


def get_version(db: Session, contract_id: str, version_number: int) -> ContractVersion:
    version = db.execute(
        select(ContractVersion).where(
            ContractVersion.contract_id == contract_id,
            ContractVersion.version_number == version_number,
        )
    ).scalar_one_or_none()
    if version is None:
        raise NotFound(f"Version {version_number} of contract {contract_id} not found")
    return version


class VersionHistory:
    """Newest-first view over a contract's versions.

    Iteration is lazy (keyset batches) and restartable: every ``iter()`` starts
    again from the latest version.
    """

    def __init__(self, db: Session, contract_id: str, batch_size: int = 50):
        self.db = db
        self.contract_id = contract_id
        self.batch_size = batch_size

    def __iter__(self) -> Iterator[ContractVersion]:
        upper: Optional[int] = None
        while True:
            query = select(ContractVersion).where(ContractVersion.contract_id == self.contract_id)
            if upper is not None:
                query = query.where(ContractVersion.version_number < upper)
            batch = self.db.execute(
                query.order_by(ContractVersion.version_number.desc()).limit(self.batch_size)
            ).scalars().all()
            yield from batch
            if len(batch) < self.batch_size:
                return
            upper = batch[-1].version_number

    def __len__(self) -> int:
        return self.db.execute(
            select(func.count()).select_from(ContractVersion).where(ContractVersion.contract_id == self.contract_id)
        ).scalar_one()

    def page(self, page: int = 1, page_size: int = 20) -> list[ContractVersion]:
        """1-based page of versions, newest first."""
        return self.db.execute(
            select(ContractVersion)
            .where(ContractVersion.contract_id == self.contract_id)
            .order_by(ContractVersion.version_number.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()


def list_versions(db: Session, contract_id: str, batch_size: int = 50) -> VersionHistory:
    if db.get(Contract, contract_id) is None:
        raise NotFound(f"Contract {contract_id} not found")
    return VersionHistory(db, contract_id, batch_size=batch_size)

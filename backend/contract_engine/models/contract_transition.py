"""ContractTransition ORM model: ledger of every committed engine operation."""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship
from contract_engine.database import Base
from contract_engine.models.contract import ActorRole


class Operation(str, enum.Enum):
    generate = "generate"
    edit = "edit"
    regenerate = "regenerate"
    publish = "publish"
    sign = "sign"
    delete = "delete"
    request_cancel = "request_cancel"
    confirm_cancel = "confirm_cancel"
    reject_cancel = "reject_cancel"
    withdraw_cancel = "withdraw_cancel"


class ContractTransition(Base):
    __tablename__ = "contract_transitions"
    __table_args__ = (
        UniqueConstraint("contract_id", "sequence", name="uq_contract_transition_sequence"),
    )

    transition_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contract_id = Column(String(36), ForeignKey("contracts.contract_id"), nullable=False, index=True)
    # Per-contract ordering that does not depend on clock resolution
    sequence = Column(Integer, nullable=False)
    operation = Column(SAEnum(Operation, native_enum=False, name="contract_operation"), nullable=False)
    from_status = Column(String(50), nullable=True)
    to_status = Column(String(50), nullable=False)
    from_version = Column(Integer, nullable=False)
    to_version = Column(Integer, nullable=False)
    actor_role = Column(
        SAEnum(ActorRole, values_callable=lambda e: [m.value for m in e], native_enum=False, name="actor_role"),
        nullable=False,
    )
    actor_id = Column(String(255), nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    contract = relationship("Contract", back_populates="transitions")

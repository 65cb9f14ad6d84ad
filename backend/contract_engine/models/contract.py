"""Contract ORM model: the versioned, status-tracked document."""
import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime, Integer, Index, Enum as SAEnum, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from contract_engine.database import Base


class ContractStatus(str, enum.Enum):
    draft = "DRAFT"
    published = "PUBLISHED"
    signed = "SIGNED"
    cancellation_requested_by_owner = "CANCELLATION_REQUESTED_BY_OWNER"
    cancellation_requested_by_counterparty = "CANCELLATION_REQUESTED_BY_COUNTERPARTY"
    cancelled = "CANCELLED"


class ActorRole(str, enum.Enum):
    owner = "OWNER"
    counterparty = "COUNTERPARTY"


class Contract(Base):
    __tablename__ = "contracts"
    __table_args__ = (
        # At most one non-cancelled contract per subject
        Index(
            "uq_contracts_active_subject",
            "subject_id",
            unique=True,
            postgresql_where=text("status != 'CANCELLED'"),
            sqlite_where=text("status != 'CANCELLED'"),
        ),
    )

    contract_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    subject_id = Column(String(255), nullable=False, index=True)
    status = Column(
        SAEnum(ContractStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, name="contract_status"),
        nullable=False,
        default=ContractStatus.draft,
    )
    current_version = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False, default="")
    template_ref = Column(String(100), nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True)
    signed_by = Column(String(255), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancellation_requested_by = Column(
        SAEnum(ActorRole, values_callable=lambda e: [m.value for m in e], native_enum=False, name="actor_role"),
        nullable=True,
    )
    cancellation_requested_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    versions = relationship(
        "ContractVersion",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="desc(ContractVersion.version_number)",
    )
    transitions = relationship(
        "ContractTransition",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractTransition.sequence",
    )

    @property
    def is_active(self) -> bool:
        return self.status != ContractStatus.cancelled

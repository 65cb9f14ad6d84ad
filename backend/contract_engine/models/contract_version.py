"""ContractVersion ORM model: immutable content snapshot, append-only."""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship
from contract_engine.database import Base
from contract_engine.models.contract import ContractStatus, ActorRole


class ChangeType(str, enum.Enum):
    manual_edit = "MANUAL_EDIT"
    auto_regenerate = "AUTO_REGENERATE"
    template_update = "TEMPLATE_UPDATE"
    data_update = "DATA_UPDATE"


class ContractVersion(Base):
    __tablename__ = "contract_versions"
    __table_args__ = (
        UniqueConstraint("contract_id", "version_number", name="uq_contract_version_number"),
    )

    version_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contract_id = Column(String(36), ForeignKey("contracts.contract_id"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    status_at_time = Column(
        SAEnum(ContractStatus, values_callable=lambda e: [m.value for m in e], native_enum=False, name="contract_status"),
        nullable=False,
    )
    change_type = Column(
        SAEnum(ChangeType, values_callable=lambda e: [m.value for m in e], native_enum=False, name="change_type"),
        nullable=False,
    )
    change_reason = Column(Text, nullable=True)
    created_by = Column(String(255), nullable=True)
    created_by_role = Column(
        SAEnum(ActorRole, values_callable=lambda e: [m.value for m in e], native_enum=False, name="actor_role"),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), nullable=False)

    contract = relationship("Contract", back_populates="versions")

"""ContractTemplate ORM model: read-only source of initial contract bodies."""
from sqlalchemy import Column, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from contract_engine.database import Base


class ContractTemplate(Base):
    __tablename__ = "contract_templates"

    template_ref = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

"""Pydantic schemas for contract versions and templates."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class VersionOut(BaseModel):
    version_id: str
    contract_id: str
    version_number: int
    content: str
    status_at_time: str
    change_type: str
    change_reason: Optional[str] = None
    created_by: Optional[str] = None
    created_by_role: str
    created_at: datetime

    model_config = {"from_attributes": True}


class VersionPage(BaseModel):
    contract_id: str
    page: int
    page_size: int
    total: int
    items: list[VersionOut]


class TemplateOut(BaseModel):
    template_ref: str
    name: str
    content: str
    is_default: bool
    is_active: bool

    model_config = {"from_attributes": True}

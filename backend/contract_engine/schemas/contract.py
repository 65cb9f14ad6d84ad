"""Pydantic schemas for Contracts."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field

from contract_engine.models.contract import ActorRole
from contract_engine.models.contract_version import ChangeType


class ActorPayload(BaseModel):
    actor_role: ActorRole
    actor_id: Optional[str] = None


class ContractGenerate(ActorPayload):
    subject_id: str = Field(min_length=1)
    template_ref: Optional[str] = None
    content: Optional[str] = None
    data_context: Optional[dict[str, Any]] = None


class ContractEdit(ActorPayload):
    content: str
    change_type: ChangeType = ChangeType.manual_edit
    change_reason: Optional[str] = None
    version: Optional[int] = None  # optimistic locking: the version the caller read


class ContractRegenerate(ActorPayload):
    change_type: ChangeType = ChangeType.auto_regenerate
    change_reason: Optional[str] = None
    data_context: Optional[dict[str, Any]] = None
    version: Optional[int] = None


class ContractOut(BaseModel):
    contract_id: str
    subject_id: str
    status: str
    current_version: int
    content: str
    template_ref: Optional[str] = None
    signed_at: Optional[datetime] = None
    signed_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_requested_by: Optional[str] = None
    cancellation_requested_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TransitionOut(BaseModel):
    transition_id: str
    sequence: int
    operation: str
    from_status: Optional[str] = None
    to_status: str
    from_version: int
    to_version: int
    actor_role: str
    actor_id: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RenderRequest(BaseModel):
    data_context: dict[str, Any] = {}
    version: Optional[int] = None  # render an older version instead of the current body


class RenderOut(BaseModel):
    contract_id: str
    version: int
    rendered: str

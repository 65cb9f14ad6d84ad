"""Contract API routes — delegates to contract_service for invariant enforcement."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from contract_engine.database import get_db
from contract_engine.models.contract import ActorRole
from contract_engine.schemas.contract import (
    ActorPayload,
    ContractEdit,
    ContractGenerate,
    ContractOut,
    ContractRegenerate,
    RenderOut,
    RenderRequest,
    TransitionOut,
)
from contract_engine.services import contract_service, version_store
from contract_engine.services.renderer import render_content

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=ContractOut, status_code=status.HTTP_201_CREATED)
def generate_contract(payload: ContractGenerate, db: Session = Depends(get_db)):
    """Create the subject's contract in DRAFT (version 1) from a template or raw content."""
    return contract_service.generate_contract(
        db=db,
        subject_id=payload.subject_id,
        actor_role=payload.actor_role,
        actor_id=payload.actor_id,
        template_ref=payload.template_ref,
        content=payload.content,
        data_context=payload.data_context,
    )


@router.get("/", response_model=list[ContractOut])
def list_contracts(
    subject_id: str = Query(...),
    include_cancelled: bool = Query(True),
    db: Session = Depends(get_db),
):
    """All contracts of a subject, newest first (active + cancelled history)."""
    return contract_service.list_contracts(db, subject_id, include_cancelled=include_cancelled)


@router.get("/active", response_model=ContractOut)
def get_active_contract(subject_id: str = Query(...), db: Session = Depends(get_db)):
    """The subject's single non-cancelled contract, or 404."""
    return contract_service.get_active_contract(db, subject_id)


@router.get("/{contract_id}", response_model=ContractOut)
def get_contract(contract_id: str, db: Session = Depends(get_db)):
    return contract_service.get_contract(db, contract_id)


@router.put("/{contract_id}", response_model=ContractOut)
def edit_contract(contract_id: str, payload: ContractEdit, db: Session = Depends(get_db)):
    """Replace the body (DRAFT/PUBLISHED only); creates a new version."""
    return contract_service.edit_contract(
        db=db,
        contract_id=contract_id,
        content=payload.content,
        actor_role=payload.actor_role,
        actor_id=payload.actor_id,
        change_type=payload.change_type,
        change_reason=payload.change_reason,
        expected_version=payload.version,
    )


@router.post("/{contract_id}/regenerate", response_model=ContractOut)
def regenerate_contract(contract_id: str, payload: ContractRegenerate, db: Session = Depends(get_db)):
    """Rebuild the body from the contract's template."""
    return contract_service.regenerate_contract(
        db=db,
        contract_id=contract_id,
        actor_role=payload.actor_role,
        actor_id=payload.actor_id,
        change_type=payload.change_type,
        data_context=payload.data_context,
        change_reason=payload.change_reason,
        expected_version=payload.version,
    )


@router.post("/{contract_id}/publish", response_model=ContractOut)
def publish_contract(contract_id: str, payload: ActorPayload, db: Session = Depends(get_db)):
    return contract_service.publish_contract(db, contract_id, payload.actor_role, payload.actor_id)


@router.post("/{contract_id}/sign", response_model=ContractOut)
def sign_contract(contract_id: str, payload: ActorPayload, db: Session = Depends(get_db)):
    return contract_service.sign_contract(db, contract_id, payload.actor_role, payload.actor_id)


@router.delete("/{contract_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contract(
    contract_id: str,
    actor_role: ActorRole = Query(...),
    actor_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Delete an unsigned contract. Signed contracts can only be cancelled."""
    contract_service.delete_contract(db, contract_id, actor_role, actor_id)


@router.get("/{contract_id}/transitions", response_model=list[TransitionOut])
def list_transitions(contract_id: str, db: Session = Depends(get_db)):
    """Ledger of committed operations, oldest first."""
    return contract_service.list_transitions(db, contract_id)


@router.post("/{contract_id}/render", response_model=RenderOut)
def render_contract(contract_id: str, payload: RenderRequest, db: Session = Depends(get_db)):
    """Preview the body with a data context; nothing is stored."""
    contract = contract_service.get_contract(db, contract_id)
    if payload.version is not None:
        source = version_store.get_version(db, contract_id, payload.version)
        content, version = source.content, source.version_number
    else:
        content, version = contract.content, contract.current_version
    logger.debug("Rendering contract %s version %d", contract_id, version)
    return RenderOut(
        contract_id=contract_id,
        version=version,
        rendered=render_content(content, payload.data_context),
    )

"""Cancellation consent API routes — bilateral request / confirm / reject."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from contract_engine.database import get_db
from contract_engine.schemas.cancellation import CancellationRequestCreate, CancellationResponse
from contract_engine.schemas.contract import ContractOut
from contract_engine.services import consent

router = APIRouter()


@router.post("/{contract_id}/cancellation", response_model=ContractOut, status_code=status.HTTP_201_CREATED)
def request_cancellation(contract_id: str, payload: CancellationRequestCreate, db: Session = Depends(get_db)):
    """Open a cancellation request on a signed contract; the other party must answer it."""
    return consent.request_cancellation(
        db=db,
        contract_id=contract_id,
        actor_role=payload.actor_role,
        reason=payload.reason,
        actor_id=payload.actor_id,
    )


@router.post("/{contract_id}/cancellation/confirm", response_model=ContractOut)
def confirm_cancellation(contract_id: str, payload: CancellationResponse, db: Session = Depends(get_db)):
    """Other party agrees: the contract becomes CANCELLED."""
    return consent.confirm_cancellation(db, contract_id, payload.actor_role, payload.actor_id)


@router.post("/{contract_id}/cancellation/reject", response_model=ContractOut)
def reject_cancellation(contract_id: str, payload: CancellationResponse, db: Session = Depends(get_db)):
    """Other party refuses: the contract goes back to SIGNED."""
    return consent.reject_cancellation(db, contract_id, payload.actor_role, payload.actor_id)


@router.post("/{contract_id}/cancellation/withdraw", response_model=ContractOut)
def withdraw_cancellation(contract_id: str, payload: CancellationResponse, db: Session = Depends(get_db)):
    """Requester takes its own request back."""
    return consent.withdraw_cancellation(db, contract_id, payload.actor_role, payload.actor_id)

"""Contract version history API routes (read-only)."""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from contract_engine.config import settings
from contract_engine.database import get_db
from contract_engine.schemas.version import VersionOut, VersionPage
from contract_engine.services import version_store

router = APIRouter()


@router.get("/{contract_id}/versions", response_model=VersionPage)
def list_versions(
    contract_id: str,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    """Versions newest first, one page at a time."""
    size = min(page_size or settings.VERSION_PAGE_SIZE, settings.VERSION_PAGE_SIZE_MAX)
    history = version_store.list_versions(db, contract_id)
    return VersionPage(
        contract_id=contract_id,
        page=page,
        page_size=size,
        total=len(history),
        items=history.page(page, size),
    )


@router.get("/{contract_id}/versions/{version_number}", response_model=VersionOut)
def get_version(contract_id: str, version_number: int, db: Session = Depends(get_db)):
    return version_store.get_version(db, contract_id, version_number)

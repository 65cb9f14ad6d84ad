"""Contract template API routes (read-only; templates are authored elsewhere)."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from contract_engine.database import get_db
from contract_engine.schemas.version import TemplateOut
from contract_engine.services import template_store

router = APIRouter()


@router.get("/", response_model=list[TemplateOut])
def list_templates(include_inactive: bool = Query(False), db: Session = Depends(get_db)):
    return template_store.list_templates(db, include_inactive=include_inactive)


@router.get("/{template_ref}", response_model=TemplateOut)
def get_template(template_ref: str, db: Session = Depends(get_db)):
    return template_store.get_template(db, template_ref)

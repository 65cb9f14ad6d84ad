"""Template store — read-only access to contract templates."""
import logging

from sqlalchemy.orm import Session

from contract_engine.exceptions import NotFound
from contract_engine.models.contract_template import ContractTemplate

logger = logging.getLogger(__name__)


def list_templates(db: Session, include_inactive: bool = False) -> list[ContractTemplate]:
    query = db.query(ContractTemplate)
    if not include_inactive:
        query = query.filter(ContractTemplate.is_active.is_(True))
    return query.order_by(ContractTemplate.is_default.desc(), ContractTemplate.name).all()


def get_template(db: Session, template_ref: str) -> ContractTemplate:
    template = (
        db.query(ContractTemplate)
        .filter(ContractTemplate.template_ref == template_ref, ContractTemplate.is_active.is_(True))
        .first()
    )
    if not template:
        raise NotFound(f"Template {template_ref} not found")
    return template


def fetch_template(db: Session, template_ref: str) -> str:
    """Return the body of an active template."""
    return get_template(db, template_ref).content


def get_default_template(db: Session) -> ContractTemplate:
    template = (
        db.query(ContractTemplate)
        .filter(ContractTemplate.is_default.is_(True), ContractTemplate.is_active.is_(True))
        .first()
    )
    if not template:
        raise NotFound("No default contract template is configured")
    logger.debug("Using default template %s", template.template_ref)
    return template

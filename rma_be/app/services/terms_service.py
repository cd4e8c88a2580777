import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.audit_log import record_event
from app.services.hubspot_service import update_ticket_for_rma
from app.services.rma_status import RmaAction, RmaStatus
from app.services.workflow import load_rma_for, write_status

logger = logging.getLogger(__name__)


def accept_terms(db: Session, rma_id: str, ip: str, user_agent: str) -> RmaStatus:
    """Record bench-fee terms acceptance; the flag and its triple are written together."""
    rma = load_rma_for(db, rma_id, RmaAction.ACCEPT_TERMS)
    rma.accepted_bench_fee_terms = True
    rma.accepted_at = datetime.utcnow()
    rma.accepted_ip = ip
    rma.accepted_user_agent = user_agent
    record_event(db, rma_id, "TERMS_ACCEPTED", "CUSTOMER", {
        "ip": ip,
        "userAgent": user_agent,
        "benchFeeAmount": str(rma.bench_test_fee_amount),
    })
    status = write_status(db, rma, RmaAction.ACCEPT_TERMS)
    db.commit()

    update_ticket_for_rma(db, rma, "Terms Accepted", {"termsAccepted": True})
    return status

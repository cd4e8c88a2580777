from sqlalchemy.orm import Session

from app.models.audit_log import record_event
from app.services.hubspot_service import update_ticket_for_rma
from app.services.rma_status import RmaAction, RmaStatus
from app.services.workflow import load_rma_for, write_status


def close_as_fixed(db: Session, rma_id: str) -> RmaStatus:
    """Customer reports the issue resolved by troubleshooting."""
    rma = load_rma_for(db, rma_id, RmaAction.CLOSE_FIXED)
    previous = rma.status
    record_event(db, rma_id, "CUSTOMER_MARKED_FIXED", "CUSTOMER", {"previousStatus": previous})
    status = write_status(db, rma, RmaAction.CLOSE_FIXED)
    db.commit()

    update_ticket_for_rma(db, rma, "Customer Marked Fixed")
    return status

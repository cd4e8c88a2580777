from sqlalchemy.orm import Session

from app.models.audit_log import record_event
from app.models.label import upsert_rma_label
from app.services.hubspot_service import update_ticket_for_rma
from app.services.rma_status import RmaAction, RmaStatus
from app.services.workflow import load_rma_for, write_status


def record_self_ship(db: Session, rma_id: str, carrier: str, tracking_number: str) -> RmaStatus:
    rma = load_rma_for(db, rma_id, RmaAction.RECORD_SELF_SHIP)
    upsert_rma_label(db, rma_id, carrier=carrier, tracking_number=tracking_number, billing_mode="SELF_SHIP")
    rma.customer_selected_return_method = "SELF_SHIP"
    rma.carrier_preference = carrier
    record_event(db, rma_id, "TRACKING_RECORDED", "CUSTOMER", {
        "carrier": carrier,
        "trackingNumber": tracking_number,
        "method": "SELF_SHIP",
    })
    status = write_status(db, rma, RmaAction.RECORD_SELF_SHIP)
    db.commit()

    update_ticket_for_rma(db, rma, "Self-Ship Tracking Recorded", {"carrier": carrier, "trackingNumber": tracking_number})
    return status

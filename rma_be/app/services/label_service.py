"""Return shipping: carrier label options, label purchase and download."""
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.audit_log import record_event
from app.models.dw import get_order_item
from app.models.label import RmaLabel, get_rma_label, upsert_rma_label
from app.models.rma_request import RmaRequest
from app.services import carrier_service
from app.services.errors import ExternalServiceError, NotFoundError, RmaValidationError
from app.services.hubspot_service import update_ticket_for_rma
from app.services.rma_status import RmaAction, RmaStatus
from app.services.workflow import load_rma, load_rma_for, write_status
from app.utils.storage import is_inside_storage, save_label_file

logger = logging.getLogger(__name__)

BRAND_RETURN_NAMES = {"UPFIX": "UpFix Returns", "MYAIRBAGS": "MyAirbags Returns"}


def label_issuance_blocked(rma: RmaRequest) -> Optional[str]:
    """Reason a prepaid label may not be issued, or None."""
    if rma.is_international:
        return "International customers must use own label"
    if not rma.warranty_eligible:
        return "Label issuance disabled for out-of-warranty items"
    return None


def _return_address(rma: RmaRequest) -> Dict[str, Any]:
    settings = get_settings()
    return {
        "name": BRAND_RETURN_NAMES.get((rma.brand or "").upper(), f"{rma.brand} Returns"),
        "street1": settings.RETURN_ADDRESS_STREET1,
        "city": settings.RETURN_ADDRESS_CITY,
        "state": settings.RETURN_ADDRESS_STATE,
        "zip": settings.RETURN_ADDRESS_ZIP,
        "country": settings.HOME_COUNTRY,
    }


def _customer_address(db: Session, rma: RmaRequest) -> Dict[str, Any]:
    item = get_order_item(db, rma.order_item_id)
    if not item:
        return {"country": get_settings().HOME_COUNTRY}
    return {
        "street1": item.ship_to_street1,
        "city": item.ship_to_city,
        "state": item.ship_to_state,
        "zip": item.ship_to_zip,
        "country": item.ship_to_country or get_settings().HOME_COUNTRY,
    }


def _offerable(rate: Dict[str, Any]) -> bool:
    # UPS and FedEx are always offered; USPS only as pay-on-delivery, when enabled
    if rate.get("carrier") == "USPS":
        return get_settings().USPS_PAY_ON_DELIVERY_ENABLED and rate.get("billingMode") == "USPS_PAY_ON_DELIVERY"
    return True


def get_label_options(db: Session, rma_id: str) -> Dict[str, Any]:
    rma = load_rma_for(db, rma_id, RmaAction.PRESENT_LABEL_OPTIONS)

    if label_issuance_blocked(rma):
        options: List[Dict[str, Any]] = []
        rma.customer_selected_return_method = "SELF_SHIP"
        target = RmaStatus.AWAITING_CUSTOMER_SHIPMENT
    else:
        rates = carrier_service.get_rates(
            _return_address(rma), _customer_address(db, rma), carrier_service.DEFAULT_PARCEL
        )
        options = [r for r in rates if _offerable(r)]
        rma.customer_selected_return_method = "PREPAID_LABEL"
        target = RmaStatus.LABEL_OPTIONS_PRESENTED
        shipment_id = next((o.get("shipmentId") for o in options if o.get("shipmentId")), None)
        if shipment_id:
            upsert_rma_label(db, rma_id, easypost_shipment_id=shipment_id)

    record_event(db, rma_id, "LABEL_OPTIONS_SHOWN", "SYSTEM", {"optionsCount": len(options)})
    status = write_status(db, rma, RmaAction.PRESENT_LABEL_OPTIONS, target)
    db.commit()
    return {"options": options, "status": status.value}


def _shipment_for_rate(db: Session, rma: RmaRequest, rate_id: str) -> str:
    label = get_rma_label(db, rma.rma_id)
    if label and label.easypost_shipment_id:
        return label.easypost_shipment_id
    rates = carrier_service.get_rates(_return_address(rma), _customer_address(db, rma), carrier_service.DEFAULT_PARCEL)
    selected = next((r for r in rates if r.get("id") == rate_id), None)
    if not selected or not selected.get("shipmentId"):
        raise RmaValidationError("Selected rate is no longer available")
    return selected["shipmentId"]


def purchase_label(db: Session, rma_id: str, carrier: str, service: str, rate_id: str) -> Dict[str, Any]:
    rma = load_rma_for(db, rma_id, RmaAction.PURCHASE_LABEL)
    blocked = label_issuance_blocked(rma)
    if blocked:
        raise RmaValidationError(blocked)

    shipment_id = _shipment_for_rate(db, rma, rate_id)
    try:
        bought = carrier_service.purchase_label(shipment_id, rate_id)
    except carrier_service.CarrierError as e:
        raise ExternalServiceError(str(e))

    tracking_number = bought["trackingNumber"]
    file_path = save_label_file(rma.brand, rma.order_id, rma.rma_id, carrier, tracking_number, bought["labelBytes"])
    try:
        upsert_rma_label(
            db,
            rma_id,
            easypost_shipment_id=shipment_id,
            easypost_rate_id=rate_id,
            carrier=carrier,
            service=service,
            tracking_number=tracking_number,
            billing_mode="USPS_PAY_ON_DELIVERY" if carrier == "USPS" else "PREPAID",
            label_file_path=file_path,
            label_created_at=datetime.utcnow(),
        )
        rma.carrier_preference = carrier
        rma.customer_selected_return_method = "PREPAID_LABEL"
        record_event(db, rma_id, "LABEL_PURCHASED", "CUSTOMER", {
            "carrier": carrier,
            "service": service,
            "trackingNumber": tracking_number,
            "rateId": rate_id,
        })
        write_status(db, rma, RmaAction.PURCHASE_LABEL)
        db.commit()
    except Exception:
        db.rollback()
        # Already paid for at the carrier
        logger.error(
            "Label purchased but not recorded for RMA %s: shipment %s, rate %s, carrier %s, tracking %s",
            rma_id, shipment_id, rate_id, carrier, tracking_number,
        )
        if os.path.exists(file_path):
            os.remove(file_path)
        raise
    logger.info("Label %s purchased for RMA %s", tracking_number, rma_id)

    update_ticket_for_rma(db, rma, "Label Purchased", {"carrier": carrier, "trackingNumber": tracking_number})
    return {
        "trackingNumber": tracking_number,
        "carrier": carrier,
        "service": service,
        "labelUrl": f"/api/rma/{rma_id}/label",
    }


def get_label_file(db: Session, rma_id: str) -> RmaLabel:
    load_rma(db, rma_id)
    label = get_rma_label(db, rma_id)
    if not label or not label.label_file_path:
        raise NotFoundError("Label not found")
    if not is_inside_storage(label.label_file_path):
        logger.error("RMA %s label path outside storage root: %s", rma_id, label.label_file_path)
        raise NotFoundError("Label not found")
    return label

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.audit_log import record_event
from app.models.dw import get_order_item, get_sku_master, get_warranty_status
from app.models.rma_request import RmaRequest
from app.services.errors import RmaValidationError
from app.services.hubspot_service import create_ticket_for_rma
from app.services.rma_status import RmaStatus
from app.utils.security import create_rma_session_token

logger = logging.getLogger(__name__)

OWNERSHIP_FAILED = "We can't validate this order item."


def _ownership_error() -> RmaValidationError:
    return RmaValidationError(OWNERSHIP_FAILED, code="OWNERSHIP_VALIDATION_FAILED")


def start_rma_session(
    db: Session,
    brand: str,
    order_id: str,
    order_item_id: str,
    sku: str,
    customer_email: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate ownership against the order warehouse and open a new RMA.

    Returns the new RMA id with a session token scoped to it.
    """
    settings = get_settings()
    item = get_order_item(db, order_item_id)
    if not item or item.order_id != order_id or item.sku != sku:
        logger.info("Ownership check failed for order %s item %s", order_id, order_item_id)
        raise _ownership_error()
    if customer_email and item.customer_email and customer_email.lower() != item.customer_email.lower():
        logger.info("Customer email mismatch for order %s item %s", order_id, order_item_id)
        raise _ownership_error()

    warranty = get_warranty_status(db, order_item_id)
    sku_master = get_sku_master(db, sku)
    warranty_eligible = bool(warranty.in_warranty) if warranty else False
    warranty_end_date = warranty.warranty_end_date if warranty else None
    warranty_reason_code = warranty.reason_code if warranty else None
    sku_group_name = sku_master.sku_group_name if sku_master and sku_master.sku_group_name else "DEFAULT"
    is_international = (item.ship_to_country or "").upper() != settings.HOME_COUNTRY

    rma = RmaRequest(
        brand=brand,
        order_id=order_id,
        order_item_id=order_item_id,
        sku=sku,
        sku_group_name=sku_group_name,
        is_international=is_international,
        warranty_eligible=warranty_eligible,
        warranty_end_date=warranty_end_date,
        warranty_reason_code=warranty_reason_code,
        status=RmaStatus.STARTED.value,
        bench_test_fee_amount=settings.BENCH_TEST_FEE_AMOUNT,
        accepted_bench_fee_terms=False,
    )
    db.add(rma)
    db.flush()

    record_event(db, rma.rma_id, "RMA_STARTED", "SYSTEM", {
        "brand": brand,
        "orderId": order_id,
        "orderItemId": order_item_id,
        "sku": sku,
        "skuGroupName": sku_group_name,
        "isInternational": is_international,
        "warrantyEligible": warranty_eligible,
    })
    record_event(db, rma.rma_id, "WARRANTY_CHECKED", "SYSTEM", {
        "warrantyEligible": warranty_eligible,
        "warrantyEndDate": warranty_end_date.isoformat() if warranty_end_date else None,
        "warrantyReasonCode": warranty_reason_code,
    })
    db.commit()
    db.refresh(rma)
    logger.info("RMA %s started for order %s item %s", rma.rma_id, order_id, order_item_id)

    create_ticket_for_rma(db, rma)

    token = create_rma_session_token(rma.rma_id, customer_email=customer_email, customer_id=customer_id)
    return {
        "rmaId": rma.rma_id,
        "rmaSessionToken": token,
        "warrantyEligible": warranty_eligible,
        "skuGroupName": sku_group_name,
        "nextAction": "TROUBLESHOOTING",
    }

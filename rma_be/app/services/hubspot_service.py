"""HubSpot ticket sync for RMAs.

Ticketing is informational: every public function here logs and swallows
failures so the calling workflow step is never rolled back because of it.
"""
import json
import logging
import time
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.audit_log import record_event
from app.models.label import get_rma_label
from app.models.rma_request import RmaRequest

logger = logging.getLogger(__name__)

HUBSPOT_API = "https://api.hubapi.com/crm/v3/objects"
CONTACT_TO_TICKET = 16
DEAL_TO_TICKET = 3
NOTE_TO_TICKET = 214


def _headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {get_settings().HUBSPOT_API_KEY}",
        "Content-Type": "application/json",
    }


def _mock_ticket_id() -> str:
    return f"ticket_{int(time.time() * 1000)}"


def create_hubspot_ticket(
    subject: str,
    properties: Dict[str, Any],
    contact_id: Optional[str] = None,
    deal_id: Optional[str] = None,
) -> Dict[str, Optional[str]]:
    settings = get_settings()
    if not settings.HUBSPOT_API_KEY:
        logger.warning("HubSpot API key not configured, using mock ticket")
        return {"ticketId": _mock_ticket_id(), "contactId": contact_id, "dealId": deal_id}

    associations = []
    if contact_id:
        associations.append({
            "to": {"id": contact_id},
            "types": [{"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": CONTACT_TO_TICKET}],
        })
    if deal_id:
        associations.append({
            "to": {"id": deal_id},
            "types": [{"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": DEAL_TO_TICKET}],
        })
    body: Dict[str, Any] = {"properties": {"subject": subject, **properties}}
    if associations:
        body["associations"] = associations

    with httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
        response = client.post(f"{HUBSPOT_API}/tickets", json=body, headers=_headers())
        response.raise_for_status()
        return {"ticketId": str(response.json()["id"]), "contactId": contact_id, "dealId": deal_id}


def update_hubspot_ticket(ticket_id: str, note: Optional[str] = None, properties: Optional[Dict[str, Any]] = None) -> None:
    settings = get_settings()
    if not settings.HUBSPOT_API_KEY:
        return

    with httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
        if properties:
            client.patch(
                f"{HUBSPOT_API}/tickets/{ticket_id}", json={"properties": properties}, headers=_headers()
            ).raise_for_status()
        if note:
            created = client.post(
                f"{HUBSPOT_API}/notes", json={"properties": {"hs_note_body": note}}, headers=_headers()
            )
            created.raise_for_status()
            note_id = created.json().get("id")
            if note_id:
                client.put(
                    f"{HUBSPOT_API}/notes/{note_id}/associations/tickets/{ticket_id}/{NOTE_TO_TICKET}",
                    headers=_headers(),
                ).raise_for_status()


def _ticket_properties(db: Session, rma: RmaRequest) -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        "orderId": rma.order_id,
        "orderItemId": rma.order_item_id,
        "sku": rma.sku,
        "skuGroup": rma.sku_group_name,
        "rmaId": rma.rma_id,
        "warrantyEligible": bool(rma.warranty_eligible),
        "warrantyEndDate": rma.warranty_end_date.isoformat() if rma.warranty_end_date else "",
        "termsAccepted": bool(rma.accepted_bench_fee_terms),
        "benchFeeAmount": str(rma.bench_test_fee_amount),
        "status": rma.status,
    }
    if rma.customer_selected_return_method:
        properties["returnMethod"] = rma.customer_selected_return_method
    if rma.carrier_preference:
        properties["carrier"] = rma.carrier_preference
    label = get_rma_label(db, rma.rma_id)
    if label and label.tracking_number:
        properties["trackingNumber"] = label.tracking_number
    return properties


def create_ticket_for_rma(db: Session, rma: RmaRequest) -> None:
    """Create the ticket and store its ids on the RMA. Commits its own writes."""
    try:
        result = create_hubspot_ticket(
            subject=f"RMA - {rma.order_id} - {rma.sku}",
            properties=_ticket_properties(db, rma),
            contact_id=rma.hubspot_contact_id,
            deal_id=rma.hubspot_deal_id,
        )
        rma.hubspot_ticket_id = result["ticketId"]
        rma.hubspot_contact_id = result["contactId"]
        rma.hubspot_deal_id = result["dealId"]
        record_event(db, rma.rma_id, "HUBSPOT_TICKET_CREATED", "SYSTEM", result)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Failed to create HubSpot ticket for RMA %s: %s", rma.rma_id, e, exc_info=True)


def update_ticket_for_rma(db: Session, rma: RmaRequest, event: str, details: Optional[Dict[str, Any]] = None) -> None:
    if not rma.hubspot_ticket_id:
        return
    try:
        note = f"RMA Update: {event}"
        if details:
            note += "\n" + json.dumps(details, indent=2, default=str)
        properties: Dict[str, Any] = {"status": rma.status}
        if details:
            properties.update(details)
        update_hubspot_ticket(rma.hubspot_ticket_id, note=note, properties=properties)
        record_event(db, rma.rma_id, "HUBSPOT_TICKET_UPDATED", "SYSTEM", {"event": event, "details": details})
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Failed to update HubSpot ticket for RMA %s: %s", rma.rma_id, e, exc_info=True)

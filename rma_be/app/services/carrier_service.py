"""EasyPost client for return label rates and purchases."""
import logging
from typing import Any, Dict, List

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)

EASYPOST_API = "https://api.easypost.com/v2"

DEFAULT_PARCEL = {"length": 10, "width": 8, "height": 4, "weight": 2}

MOCK_RATES = [
    {"id": "rate_ups_ground", "carrier": "UPS", "service": "Ground", "rate": "12.50", "billingMode": "PREPAID", "shipmentId": "shp_mock"},
    {"id": "rate_fedex_ground", "carrier": "FedEx", "service": "Ground", "rate": "13.00", "billingMode": "PREPAID", "shipmentId": "shp_mock"},
]
MOCK_TRACKING_NUMBER = "1Z999AA10123456784"


class CarrierError(Exception):
    pass


def _client() -> httpx.Client:
    settings = get_settings()
    return httpx.Client(
        base_url=EASYPOST_API,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        headers={"Authorization": f"Bearer {settings.EASYPOST_API_KEY}"},
    )


def _address(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "street1": data.get("street1"),
        "city": data.get("city"),
        "state": data.get("state"),
        "zip": data.get("zip"),
        "country": data.get("country") or "US",
    }


def get_rates(return_address: Dict[str, Any], customer_address: Dict[str, Any], parcel: Dict[str, Any] = None) -> List[Dict[str, Any]]:
    """Shipment rates from the customer to the return address.

    Falls back to fixed mock rates without an API key; an API failure yields
    no rates rather than an error.
    """
    if not get_settings().EASYPOST_API_KEY:
        logger.warning("EasyPost API key not configured, using mock rates")
        return [dict(r) for r in MOCK_RATES]

    try:
        with _client() as client:
            from_address = client.post("/addresses", json=_address(customer_address))
            from_address.raise_for_status()
            to_address = client.post("/addresses", json=_address(return_address))
            to_address.raise_for_status()
            parcel_resp = client.post("/parcels", json=parcel or DEFAULT_PARCEL)
            parcel_resp.raise_for_status()
            shipment = client.post("/shipments", json={
                "to_address": {"id": to_address.json()["id"]},
                "from_address": {"id": from_address.json()["id"]},
                "parcel": {"id": parcel_resp.json()["id"]},
            })
            shipment.raise_for_status()
            data = shipment.json()
    except (httpx.HTTPError, KeyError, ValueError) as e:
        logger.error("EasyPost rates fetch failed: %s", e)
        return []

    return [
        {
            "id": rate["id"],
            "carrier": rate["carrier"],
            "service": rate["service"],
            "rate": str(rate["rate"]),
            "billingMode": rate.get("billing_type") or "PREPAID",
            "shipmentId": data.get("id"),
        }
        for rate in data.get("rates") or []
    ]


def purchase_label(shipment_id: str, rate_id: str) -> Dict[str, Any]:
    """Buy ``rate_id`` on the shipment; returns trackingNumber, labelUrl and the PDF bytes."""
    if not get_settings().EASYPOST_API_KEY:
        logger.warning("EasyPost API key not configured, using mock label")
        return {
            "trackingNumber": MOCK_TRACKING_NUMBER,
            "labelUrl": "https://easypost.com/labels/mock.pdf",
            "labelBytes": b"mock pdf content",
        }

    try:
        with _client() as client:
            bought = client.post(f"/shipments/{shipment_id}/buy", json={"rate": {"id": rate_id}})
            bought.raise_for_status()
            data = bought.json()
            label_url = (data.get("postage_label") or {}).get("label_url")
            if not label_url:
                raise CarrierError("Label URL not available")
            pdf = client.get(label_url)
            pdf.raise_for_status()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("EasyPost label purchase failed: %s", e)
        raise CarrierError("Failed to purchase label") from e

    return {"trackingNumber": data.get("tracking_code"), "labelUrl": label_url, "labelBytes": pdf.content}

import os
import tempfile

import pytest
from fastapi.testclient import TestClient

# Environment must be in place before any app import: settings and the engine
# are built at import time.
_TMP_DIR = tempfile.mkdtemp(prefix="rma_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'rma_test.db')}"
os.environ["STORAGE_ROOT_PATH"] = os.path.join(_TMP_DIR, "storage")
os.environ["ENABLE_STORAGE_CLEANUP"] = "0"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin-pass"
os.environ["HUBSPOT_API_KEY"] = ""
os.environ["EASYPOST_API_KEY"] = ""
os.environ["USPS_PAY_ON_DELIVERY_ENABLED"] = "0"

from app.main import app  # noqa: E402
from app.models.rma_request import Base, SessionLocal, engine  # noqa: E402
from app.models import troubleshooting, playbook, label, audit_log, dw  # noqa: E402,F401
from app.models.dw import DwOrderItem, DwSkuMaster, DwWarrantyStatus  # noqa: E402
from app.models.playbook import insert_playbook_version  # noqa: E402


ADMIN_AUTH = ("admin", "admin-pass")

AIRBAG_PLAYBOOK = {
    "steps": [
        {
            "id": "check_light",
            "title": "Check the warning light",
            "description": "Turn the ignition on and watch the airbag light.",
            "requiresEvidence": True,
            "branching": [{"condition": "fail", "end": True}],
        },
        {
            "id": "check_connector",
            "title": "Inspect the connector",
        },
    ]
}


@pytest.fixture(scope="session", autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def seed_order(db):
    """Factory inserting one order item with its warranty and SKU group rows."""

    def _seed(
        order_item_id="OI-1",
        order_id="ORD-1",
        sku="SKU-1",
        email="customer@example.com",
        country="US",
        in_warranty=True,
        sku_group="AIRBAG",
    ):
        db.add(DwOrderItem(
            order_item_id=order_item_id,
            order_id=order_id,
            sku=sku,
            customer_email=email,
            customer_id="C-1",
            ship_to_street1="1 Main St",
            ship_to_city="Springfield",
            ship_to_state="IL",
            ship_to_zip="62701",
            ship_to_country=country,
        ))
        db.add(DwWarrantyStatus(order_item_id=order_item_id, in_warranty=in_warranty, reason_code="STD"))
        if sku_group and not db.get(DwSkuMaster, sku):
            db.add(DwSkuMaster(sku=sku, sku_group_name=sku_group))
        db.commit()
        return {"orderItemId": order_item_id, "orderId": order_id, "sku": sku, "email": email}

    return _seed


@pytest.fixture
def airbag_playbook(db):
    row = insert_playbook_version(db, "AIRBAG", AIRBAG_PLAYBOOK)
    db.commit()
    return row


@pytest.fixture
def start_rma(client):
    """Factory calling POST /start; returns the response body plus bearer headers."""

    def _start(order, brand="UPFIX"):
        resp = client.post("/api/rma/start", json={
            "brand": brand,
            "orderId": order["orderId"],
            "orderItemId": order["orderItemId"],
            "sku": order["sku"],
            "customer": {"email": order["email"]},
        })
        assert resp.status_code == 200, resp.text
        body = resp.json()
        body["headers"] = {"Authorization": f"Bearer {body['rmaSessionToken']}"}
        return body

    return _start

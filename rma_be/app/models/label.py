from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import Session
from typing import Optional

from app.models.rma_request import Base


class RmaLabel(Base):
    __tablename__ = "rma_labels"

    id = Column(Integer, primary_key=True, index=True)
    rma_id = Column(String(36), ForeignKey("rma_requests.rma_id"), nullable=False, unique=True, index=True)
    easypost_shipment_id = Column(String(100), nullable=True)
    easypost_rate_id = Column(String(100), nullable=True)
    carrier = Column(String(50), nullable=True)
    service = Column(String(100), nullable=True)
    tracking_number = Column(String(100), nullable=True)
    billing_mode = Column(String(50), nullable=True)  # PREPAID, USPS_PAY_ON_DELIVERY
    label_file_path = Column(String(1000), nullable=True)
    label_created_at = Column(DateTime, nullable=True)


def get_rma_label(db: Session, rma_id: str) -> Optional[RmaLabel]:
    return db.query(RmaLabel).filter(RmaLabel.rma_id == rma_id).first()


def upsert_rma_label(db: Session, rma_id: str, **fields) -> RmaLabel:
    label = get_rma_label(db, rma_id)
    if not label:
        label = RmaLabel(rma_id=rma_id)
        db.add(label)
    for key, value in fields.items():
        setattr(label, key, value)
    db.flush()
    return label

"""Read-only order warehouse views used for ownership, warranty and SKU group lookups."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import Session
from typing import Optional

from app.models.rma_request import Base


class DwOrderItem(Base):
    __tablename__ = "dw_order_items"

    order_item_id = Column(String(100), primary_key=True)
    order_id = Column(String(100), nullable=False, index=True)
    sku = Column(String(100), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_id = Column(String(100), nullable=True)
    ship_to_street1 = Column(String(255), nullable=True)
    ship_to_city = Column(String(100), nullable=True)
    ship_to_state = Column(String(50), nullable=True)
    ship_to_zip = Column(String(20), nullable=True)
    ship_to_country = Column(String(2), nullable=True)


class DwWarrantyStatus(Base):
    __tablename__ = "dw_warranty_status"

    order_item_id = Column(String(100), primary_key=True)
    in_warranty = Column(Boolean, nullable=False, default=False)
    warranty_end_date = Column(DateTime, nullable=True)
    reason_code = Column(String(50), nullable=True)


class DwSkuMaster(Base):
    __tablename__ = "dw_sku_master"

    sku = Column(String(100), primary_key=True)
    sku_group_name = Column(String(100), nullable=False)


def get_order_item(db: Session, order_item_id: str) -> Optional[DwOrderItem]:
    return db.query(DwOrderItem).filter(DwOrderItem.order_item_id == order_item_id).first()


def get_warranty_status(db: Session, order_item_id: str) -> Optional[DwWarrantyStatus]:
    return db.query(DwWarrantyStatus).filter(DwWarrantyStatus.order_item_id == order_item_id).first()


def get_sku_master(db: Session, sku: str) -> Optional[DwSkuMaster]:
    return db.query(DwSkuMaster).filter(DwSkuMaster.sku == sku).first()

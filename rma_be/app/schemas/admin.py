from pydantic import BaseModel, Field
from typing import Any, List, Optional
from datetime import datetime

from app.schemas.rma import RmaOut
from app.schemas.troubleshooting import TroubleshootingRecord


class OverrideIn(BaseModel):
    status: str = Field(min_length=1)
    reason: str = Field(min_length=1)
    adminUser: Optional[str] = None


class FeedbackIn(BaseModel):
    decisionCorrect: bool
    notes: Optional[str] = None
    adminUser: Optional[str] = None


class QueueItemOut(BaseModel):
    rmaId: str
    brand: str
    orderId: str
    orderItemId: str
    sku: str
    status: str
    warrantyEligible: bool
    isInternational: bool
    createdAt: datetime


class AuditEntryOut(BaseModel):
    auditId: int
    rmaId: str
    eventType: str
    actorType: str
    payloadJson: Optional[Any] = None
    createdAt: datetime


class LabelOut(BaseModel):
    carrier: Optional[str] = None
    service: Optional[str] = None
    trackingNumber: Optional[str] = None
    billingMode: Optional[str] = None
    labelFilePath: Optional[str] = None
    labelCreatedAt: Optional[datetime] = None


class RmaDetailOut(BaseModel):
    rma: RmaOut
    troubleshooting: Optional[TroubleshootingRecord] = None
    label: Optional[LabelOut] = None
    auditLog: List[AuditEntryOut]


def map_audit_to_out(entry) -> AuditEntryOut:
    return AuditEntryOut(
        auditId=entry.audit_id,
        rmaId=entry.rma_id,
        eventType=entry.event_type,
        actorType=entry.actor_type,
        payloadJson=entry.payload_json,
        createdAt=entry.created_at,
    )


def map_label_to_out(label) -> Optional[LabelOut]:
    if not label:
        return None
    return LabelOut(
        carrier=label.carrier,
        service=label.service,
        trackingNumber=label.tracking_number,
        billingMode=label.billing_mode,
        labelFilePath=label.label_file_path,
        labelCreatedAt=label.label_created_at,
    )

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.models.rma_request import get_db
from app.schemas.admin import (
    AuditEntryOut,
    FeedbackIn,
    OverrideIn,
    QueueItemOut,
    RmaDetailOut,
    map_audit_to_out,
    map_label_to_out,
)
from app.schemas.rma import map_rma_to_out
from app.services import admin_service
from app.utils.security import get_current_admin


router = APIRouter()


# 21. RMA queue (Admin)
@router.get("/rma/queue", response_model=List[QueueItemOut])
def rma_queue(
    status: Optional[str] = Query(None),
    days: Optional[int] = Query(None, ge=1),
    isInternational: Optional[bool] = Query(None),
    outOfWarranty: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    admin: str = Depends(get_current_admin),
):
    rows = admin_service.get_rma_queue(
        db,
        status=status,
        days=days,
        is_international=isInternational,
        out_of_warranty=outOfWarranty,
    )
    return [
        QueueItemOut(
            rmaId=r.rma_id,
            brand=r.brand,
            orderId=r.order_id,
            orderItemId=r.order_item_id,
            sku=r.sku,
            status=r.status,
            warrantyEligible=bool(r.warranty_eligible),
            isInternational=bool(r.is_international),
            createdAt=r.created_at,
        )
        for r in rows
    ]


# 22. RMA detail (Admin)
@router.get("/rma/{rma_id}", response_model=RmaDetailOut)
def rma_detail(rma_id: str, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    detail = admin_service.get_rma_detail(db, rma_id)
    return RmaDetailOut(
        rma=map_rma_to_out(detail["rma"]),
        troubleshooting=detail["troubleshooting"],
        label=map_label_to_out(detail["label"]),
        auditLog=[map_audit_to_out(e) for e in detail["auditLog"]],
    )


# 23. Override status (Admin)
@router.post("/rma/{rma_id}/override")
def override_status(
    rma_id: str,
    payload: OverrideIn,
    db: Session = Depends(get_db),
    admin: str = Depends(get_current_admin),
):
    status = admin_service.override_status(db, rma_id, payload.status, payload.reason, payload.adminUser or admin)
    return {"success": True, "status": status.value}


# 24. Decision feedback (Admin)
@router.post("/rma/{rma_id}/feedback")
def submit_feedback(
    rma_id: str,
    payload: FeedbackIn,
    db: Session = Depends(get_db),
    admin: str = Depends(get_current_admin),
):
    admin_service.submit_feedback(db, rma_id, payload.decisionCorrect, payload.notes, payload.adminUser or admin)
    return {"success": True}


# 25. Audit log (Admin)
@router.get("/rma/{rma_id}/audit", response_model=List[AuditEntryOut])
def rma_audit(rma_id: str, db: Session = Depends(get_db), admin: str = Depends(get_current_admin)):
    return [map_audit_to_out(e) for e in admin_service.get_rma_audit(db, rma_id)]

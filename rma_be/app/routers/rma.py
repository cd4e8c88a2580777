from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from typing import List
import os

from app.models.rma_request import get_db
from app.schemas.rma import (
    AuthorizationOut,
    LabelOptionsOut,
    LabelPurchaseIn,
    LabelPurchaseOut,
    RmaViewOut,
    SelfShipIn,
    StartRmaIn,
    StartRmaOut,
    StepCompleteOut,
    map_rma_to_out,
)
from app.schemas.troubleshooting import EvidenceRecord, StepCompleteIn, SymptomsIn
from app.services import (
    authorization_service,
    close_fixed_service,
    evidence_service,
    label_service,
    rma_start_service,
    self_ship_service,
    terms_service,
    troubleshooting_service,
)
from app.utils.security import RmaSession, get_rma_session, require_rma_access


router = APIRouter()


def rma_access(rma_id: str, session: RmaSession = Depends(get_rma_session)) -> str:
    require_rma_access(rma_id, session)
    return rma_id


# 1. Start RMA session
@router.post("/start", response_model=StartRmaOut)
def start_rma(payload: StartRmaIn, db: Session = Depends(get_db)):
    return rma_start_service.start_rma_session(
        db,
        brand=payload.brand,
        order_id=payload.orderId,
        order_item_id=payload.orderItemId,
        sku=payload.sku,
        customer_email=payload.customer.email,
        customer_id=payload.customer.id,
    )


# 2. Get RMA with troubleshooting progress
@router.get("/{rma_id}", response_model=RmaViewOut)
def get_rma(rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    view = troubleshooting_service.get_rma_view(db, rma_id)
    view["rma"] = map_rma_to_out(view["rma"])
    return view


# 3. Save symptoms
@router.post("/{rma_id}/symptoms")
def save_symptoms(payload: SymptomsIn, rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    troubleshooting_service.save_symptoms(db, rma_id, payload.symptoms)
    return {"success": True}


# 4. Complete troubleshooting step
@router.post("/{rma_id}/step/{step_id}", response_model=StepCompleteOut)
def complete_step(
    step_id: str,
    payload: StepCompleteIn,
    rma_id: str = Depends(rma_access),
    db: Session = Depends(get_db),
):
    return troubleshooting_service.complete_step(
        db, rma_id, step_id, answer=payload.answer, evidence_ids=payload.evidenceIds
    )


# 5. Opt out of troubleshooting
@router.post("/{rma_id}/opt-out")
def opt_out(rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    status = troubleshooting_service.opt_out(db, rma_id)
    return {"success": True, "status": status.value}


# 6. Upload evidence
@router.post("/{rma_id}/evidence", response_model=EvidenceRecord)
def upload_evidence(
    file: UploadFile = File(...),
    rma_id: str = Depends(rma_access),
    db: Session = Depends(get_db),
):
    data = file.file.read()
    return evidence_service.upload_evidence(db, rma_id, file.filename, data, mime_type=file.content_type)


# 7. List evidence
@router.get("/{rma_id}/evidence", response_model=List[EvidenceRecord])
def list_evidence(rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    return evidence_service.list_evidence(db, rma_id)


# 8. Accept bench-fee terms
@router.post("/{rma_id}/accept-terms")
def accept_terms(request: Request, rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    ip = request.client.host if request.client else "unknown"
    user_agent = request.headers.get("user-agent") or "unknown"
    status = terms_service.accept_terms(db, rma_id, ip, user_agent)
    return {"success": True, "status": status.value}


# 9. Run authorization
@router.post("/{rma_id}/authorize", response_model=AuthorizationOut)
def authorize(rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    return authorization_service.authorize_rma(db, rma_id).as_dict()


# 10. Label options
@router.post("/{rma_id}/label/options", response_model=LabelOptionsOut)
def label_options(rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    return label_service.get_label_options(db, rma_id)


# 11. Purchase label
@router.post("/{rma_id}/label/purchase", response_model=LabelPurchaseOut)
def purchase_label(payload: LabelPurchaseIn, rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    return label_service.purchase_label(db, rma_id, payload.carrier, payload.service, payload.rateId)


# 12. Download label
@router.get("/{rma_id}/label")
def download_label(rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    label = label_service.get_label_file(db, rma_id)
    return FileResponse(
        label.label_file_path,
        media_type="application/pdf",
        filename=os.path.basename(label.label_file_path),
    )


# 13. Record self-ship tracking
@router.post("/{rma_id}/self-ship")
def self_ship(payload: SelfShipIn, rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    status = self_ship_service.record_self_ship(db, rma_id, payload.carrier, payload.trackingNumber)
    return {"success": True, "status": status.value}


# 14. Close as fixed
@router.post("/{rma_id}/close-fixed")
def close_fixed(rma_id: str = Depends(rma_access), db: Session = Depends(get_db)):
    status = close_fixed_service.close_as_fixed(db, rma_id)
    return {"success": True, "status": status.value}

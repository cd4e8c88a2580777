import logging
import os
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.audit_log import record_event
from app.models.troubleshooting import get_or_create_troubleshooting_row
from app.schemas.troubleshooting import EvidenceRecord
from app.services.errors import RmaValidationError
from app.services.rma_status import RmaAction
from app.services.troubleshooting_service import stored_list, load_troubleshooting
from app.services.workflow import load_rma, load_rma_for, write_status
from app.utils.storage import (
    save_evidence_file,
    validate_file_extension,
    validate_file_name,
    validate_file_size,
)

logger = logging.getLogger(__name__)


def upload_evidence(
    db: Session,
    rma_id: str,
    file_name: Optional[str],
    data: bytes,
    mime_type: Optional[str] = None,
) -> EvidenceRecord:
    settings = get_settings()
    rma = load_rma_for(db, rma_id, RmaAction.UPLOAD_EVIDENCE)

    if not validate_file_name(file_name):
        raise RmaValidationError("Invalid file name")
    if not validate_file_extension(file_name, settings.ALLOWED_EXTENSIONS):
        raise RmaValidationError(
            f"File type not allowed. Allowed types: {', '.join(settings.ALLOWED_EXTENSIONS)}"
        )
    if not validate_file_size(len(data), settings.MAX_UPLOAD_SIZE_MB):
        raise RmaValidationError(f"File too large. Maximum size: {settings.MAX_UPLOAD_SIZE_MB}MB")

    row = get_or_create_troubleshooting_row(db, rma_id)
    existing = stored_list(row, "evidence_json")

    file_path = save_evidence_file(rma.brand, rma.order_id, rma.rma_id, file_name, data)
    try:
        record = EvidenceRecord(
            evidenceId=str(uuid.uuid4()),
            fileName=file_name,
            filePath=file_path,
            fileSize=len(data),
            mimeType=mime_type,
            uploadedAt=datetime.utcnow(),
        )
        row.evidence_json = existing + [record.model_dump(mode="json")]
        record_event(db, rma_id, "EVIDENCE_UPLOADED", "CUSTOMER", {
            "evidenceId": record.evidenceId,
            "fileName": file_name,
            "fileSize": record.fileSize,
        })
        write_status(db, rma, RmaAction.UPLOAD_EVIDENCE)
        db.commit()
    except Exception:
        db.rollback()
        # Keep disk and database in step
        if os.path.exists(file_path):
            os.remove(file_path)
        raise

    logger.info("Evidence %s stored for RMA %s (%d bytes)", record.evidenceId, rma_id, record.fileSize)
    return record


def list_evidence(db: Session, rma_id: str) -> List[EvidenceRecord]:
    load_rma(db, rma_id)
    record = load_troubleshooting(db, rma_id)
    return record.evidence if record else []

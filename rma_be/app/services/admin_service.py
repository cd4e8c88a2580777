"""Back-office operations: review queue, RMA detail, overrides, feedback and playbooks."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.audit_log import get_audit_log, record_event
from app.models.label import get_rma_label
from app.models.playbook import RmaPlaybook, get_active_playbook_row, insert_playbook_version
from app.models.rma_request import RmaRequest, query_rma_queue
from app.schemas.playbook import Playbook
from app.services.errors import NotFoundError, RmaValidationError
from app.services.playbook_engine import parse_playbook, validate_playbook_integrity
from app.services.rma_status import RmaAction, RmaStatus, parse_status
from app.services.troubleshooting_service import load_troubleshooting
from app.services.workflow import load_rma, load_rma_for, write_status

logger = logging.getLogger(__name__)


def get_rma_queue(
    db: Session,
    status: Optional[str] = None,
    days: Optional[int] = None,
    is_international: Optional[bool] = None,
    out_of_warranty: Optional[bool] = None,
) -> List[RmaRequest]:
    if status:
        try:
            status = parse_status(status).value
        except ValueError as e:
            raise RmaValidationError(str(e))
    return query_rma_queue(
        db,
        status=status,
        days=days,
        is_international=is_international,
        out_of_warranty=out_of_warranty,
    )


def get_rma_detail(db: Session, rma_id: str) -> Dict[str, Any]:
    rma = load_rma(db, rma_id)
    return {
        "rma": rma,
        "troubleshooting": load_troubleshooting(db, rma_id),
        "label": get_rma_label(db, rma_id),
        "auditLog": get_audit_log(db, rma_id),
    }


def get_rma_audit(db: Session, rma_id: str):
    load_rma(db, rma_id)
    return get_audit_log(db, rma_id)


def override_status(db: Session, rma_id: str, new_status: str, reason: str, admin_user: Optional[str] = None) -> RmaStatus:
    """Move the RMA to any status. Guards are bypassed; the audit entry is not."""
    if not reason or not reason.strip():
        raise RmaValidationError("A reason is required for status overrides")
    try:
        target = parse_status(new_status)
    except ValueError as e:
        raise RmaValidationError(str(e))

    rma = load_rma_for(db, rma_id, RmaAction.ADMIN_OVERRIDE)
    previous = rma.status
    status = write_status(db, rma, RmaAction.ADMIN_OVERRIDE, target)
    record_event(db, rma_id, "ADMIN_OVERRIDE", "AGENT", {
        "previousStatus": previous,
        "newStatus": status.value,
        "reason": reason.strip(),
        "adminUser": admin_user,
    })
    db.commit()
    logger.warning("Admin %s overrode RMA %s: %s -> %s", admin_user, rma_id, previous, status.value)
    return status


def submit_feedback(db: Session, rma_id: str, decision_correct: bool, notes: Optional[str] = None, admin_user: Optional[str] = None) -> None:
    rma = load_rma(db, rma_id)
    record_event(db, rma_id, "ADMIN_FEEDBACK", "AGENT", {
        "decisionCorrect": decision_correct,
        "notes": notes,
        "adminUser": admin_user,
        "automatedDecision": rma.status,
    })
    db.commit()


def upsert_playbook(db: Session, sku_group_name: str, playbook: Playbook, is_active: bool = True) -> RmaPlaybook:
    problems = validate_playbook_integrity(playbook)
    if problems:
        raise RmaValidationError("Invalid playbook: " + "; ".join(problems), code="PLAYBOOK_INTEGRITY")
    row = insert_playbook_version(
        db,
        sku_group_name,
        playbook.model_dump(mode="json", exclude={"metadata"}, exclude_none=True),
        is_active=is_active,
    )
    db.commit()
    db.refresh(row)
    logger.info("Playbook %s v%s saved (active=%s)", sku_group_name, row.version, row.is_active)
    return row


def get_playbook(db: Session, sku_group_name: str) -> Dict[str, Any]:
    row = get_active_playbook_row(db, sku_group_name)
    if not row:
        raise NotFoundError("Playbook not found")
    return {
        "skuGroupName": row.sku_group_name,
        "playbookJson": parse_playbook(row.playbook_json, name=row.sku_group_name, version=row.version),
        "version": row.version,
        "isActive": row.is_active,
        "updatedAt": row.updated_at,
    }

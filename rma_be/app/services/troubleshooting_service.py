"""Troubleshooting orchestration: symptoms, playbook steps, opt-out and the RMA view."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.models.audit_log import record_event
from app.models.troubleshooting import (
    RmaTroubleshooting,
    get_or_create_troubleshooting_row,
    get_troubleshooting_row,
)
from app.schemas.troubleshooting import CompletedStep, TroubleshootingRecord
from app.services.errors import MalformedDataError, NotFoundError, RmaValidationError
from app.services.playbook_engine import get_playbook_for_sku_group, is_playbook_complete, next_step
from app.services.rma_status import RmaAction, RmaStatus
from app.services.workflow import load_rma, load_rma_for, write_status

logger = logging.getLogger(__name__)


def stored_list(row: RmaTroubleshooting, attr: str) -> List[Any]:
    value = getattr(row, attr)
    if value is None:
        return []
    if not isinstance(value, list):
        logger.error("RMA %s: %s is %s, expected a list", row.rma_id, attr, type(value).__name__)
        raise MalformedDataError(f"Stored {attr} is malformed")
    return list(value)


def parse_troubleshooting_row(row: RmaTroubleshooting) -> TroubleshootingRecord:
    try:
        return TroubleshootingRecord(
            symptoms=row.symptoms_json,
            stepsCompleted=stored_list(row, "steps_completed_json"),
            evidence=stored_list(row, "evidence_json"),
            customerOptedOutOfTS=bool(row.customer_opted_out_of_ts),
            aiSummary=row.ai_summary,
            aiRecommendation=row.ai_recommendation,
            aiConfidence=row.ai_confidence,
        )
    except ValidationError as e:
        logger.error("RMA %s: troubleshooting data failed to parse: %s", row.rma_id, e)
        raise MalformedDataError("Stored troubleshooting data is malformed")


def load_troubleshooting(db: Session, rma_id: str) -> Optional[TroubleshootingRecord]:
    row = get_troubleshooting_row(db, rma_id)
    if not row:
        return None
    return parse_troubleshooting_row(row)


def get_rma_view(db: Session, rma_id: str) -> Dict[str, Any]:
    rma = load_rma(db, rma_id)
    record = load_troubleshooting(db, rma_id)
    playbook = get_playbook_for_sku_group(db, rma.sku_group_name)

    steps = record.stepsCompleted if record else []
    nxt = None
    complete = False
    flow_ended = False
    if playbook:
        last = record.last_step_id() if record else None
        nxt = next_step(playbook, last, steps, record.answers() if record else None)
        complete = is_playbook_complete(playbook, steps)
        flow_ended = last is not None and nxt is None

    return {
        "rma": rma,
        "troubleshooting": record,
        "playbook": playbook,
        "nextStep": nxt,
        "isComplete": complete,
        "flowEnded": flow_ended,
    }


def save_symptoms(db: Session, rma_id: str, symptoms: Any) -> None:
    rma = load_rma_for(db, rma_id, RmaAction.RECORD_SYMPTOMS)
    row = get_or_create_troubleshooting_row(db, rma_id)
    row.symptoms_json = symptoms
    record_event(db, rma_id, "SYMPTOMS_SAVED", "CUSTOMER", {"symptoms": symptoms})
    write_status(db, rma, RmaAction.RECORD_SYMPTOMS)
    db.commit()


def complete_step(
    db: Session,
    rma_id: str,
    step_id: str,
    answer: Any = None,
    evidence_ids: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Record a completed playbook step and advance the troubleshooting status.

    The step's ``requiresEvidence`` flag is copied onto the completed-step
    record so later playbook versions do not change what the RMA owed.
    """
    rma = load_rma_for(db, rma_id, RmaAction.COMPLETE_STEP)
    playbook = get_playbook_for_sku_group(db, rma.sku_group_name)
    if not playbook:
        raise NotFoundError("Playbook not found")
    step = playbook.find_step(step_id)
    if not step:
        raise RmaValidationError("Invalid step ID")

    row = get_or_create_troubleshooting_row(db, rma_id)
    record = parse_troubleshooting_row(row)
    entry = CompletedStep(
        stepId=step_id,
        answer=answer,
        evidenceIds=evidence_ids or [],
        completedAt=datetime.utcnow(),
        requiresEvidence=step.requiresEvidence,
    )
    # Reassign so the JSON column is seen as changed
    row.steps_completed_json = stored_list(row, "steps_completed_json") + [entry.model_dump(mode="json")]
    record_event(db, rma_id, "PLAYBOOK_STEP_COMPLETED", "CUSTOMER", {
        "stepId": step_id,
        "answer": answer,
        "evidenceIds": entry.evidenceIds,
    })
    status = write_status(db, rma, RmaAction.COMPLETE_STEP)

    steps = record.stepsCompleted + [entry]
    complete = is_playbook_complete(playbook, steps)
    if complete:
        status = write_status(db, rma, RmaAction.FINISH_TROUBLESHOOTING)
        record_event(db, rma_id, "TROUBLESHOOTING_COMPLETED", "SYSTEM", {"stepsCompleted": len(steps)})

    answers = {s.stepId: s.answer for s in steps}
    nxt = next_step(playbook, step_id, steps, answers)
    db.commit()
    return {"nextStep": nxt, "isComplete": complete, "status": status.value}


def opt_out(db: Session, rma_id: str) -> RmaStatus:
    rma = load_rma_for(db, rma_id, RmaAction.OPT_OUT)
    row = get_or_create_troubleshooting_row(db, rma_id)
    row.customer_opted_out_of_ts = True
    record_event(db, rma_id, "CUSTOMER_OPTED_OUT", "CUSTOMER")
    status = write_status(db, rma, RmaAction.OPT_OUT)
    db.commit()
    return status

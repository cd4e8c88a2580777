import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.audit_log import record_event
from app.models.rma_request import count_non_terminal_rmas
from app.services.hubspot_service import update_ticket_for_rma
from app.services.rma_status import REPEAT_EXCLUDED_STATUSES, RmaAction, RmaStatus
from app.services.rules_engine import AuthorizationResult, evaluate_authorization
from app.services.troubleshooting_service import load_troubleshooting
from app.services.workflow import load_rma_for, write_status

logger = logging.getLogger(__name__)


def authorize_rma(db: Session, rma_id: str, now: Optional[datetime] = None) -> AuthorizationResult:
    """Run the rules engine and move the RMA to the decided status."""
    settings = get_settings()
    rma = load_rma_for(db, rma_id, RmaAction.AUTHORIZE)
    troubleshooting = load_troubleshooting(db, rma_id)

    def count_repeats(order_id: str, order_item_id: str, since: datetime) -> int:
        return count_non_terminal_rmas(
            db,
            order_id,
            order_item_id,
            since,
            [s.value for s in REPEAT_EXCLUDED_STATUSES],
            exclude_rma_id=rma.rma_id,
        )

    result = evaluate_authorization(
        rma,
        troubleshooting,
        count_repeats,
        now=now,
        window_days=settings.REPEAT_RMA_WINDOW_DAYS,
    )
    write_status(db, rma, RmaAction.AUTHORIZE, RmaStatus(result.decision.value))
    record_event(db, rma_id, "RULE_DECISION", "RULE_ENGINE", result.as_dict())
    db.commit()
    logger.info("RMA %s authorization: %s (%s)", rma_id, result.decision.value, result.reason_code.value)

    update_ticket_for_rma(db, rma, "Authorization Decision", {
        "decision": result.decision.value,
        "reasonCode": result.reason_code.value,
    })
    return result

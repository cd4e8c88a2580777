"""Helpers shared by the workflow orchestrators.

Every orchestrator follows the same shape: load the RMA, check the action
against the transition table, apply its effect, write the status with a
compare-and-swap, record audit entries, then commit once.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.models.rma_request import RmaRequest, compare_and_set_status, get_rma_request
from app.services.errors import InvalidTransitionError, NotFoundError
from app.services.rma_status import RmaAction, RmaStatus, assert_transition, resolve_target

logger = logging.getLogger(__name__)


def load_rma(db: Session, rma_id: str) -> RmaRequest:
    rma = get_rma_request(db, rma_id)
    if not rma:
        raise NotFoundError("RMA not found")
    return rma


def load_rma_for(db: Session, rma_id: str, action: RmaAction) -> RmaRequest:
    rma = load_rma(db, rma_id)
    assert_transition(rma.status, action)
    return rma


def write_status(db: Session, rma: RmaRequest, action: RmaAction, target: Optional[RmaStatus] = None) -> RmaStatus:
    """Persist the status ``action`` leads to, guarded on the status read earlier.

    Actions that keep the status still run the conditional update, so their
    guard is re-checked against the row. Raises InvalidTransitionError with
    the current status when another writer got there first. Nothing is
    committed here.
    """
    expected = rma.status
    new_status = resolve_target(expected, action, target)
    db.flush()
    if not compare_and_set_status(db, rma.rma_id, expected, new_status.value):
        db.rollback()
        current = get_rma_request(db, rma.rma_id)
        current_status = current.status if current else expected
        logger.warning(
            "Status write lost for RMA %s: expected %s, found %s (%s)",
            rma.rma_id, expected, current_status, action.value,
        )
        raise InvalidTransitionError(current_status, action.value)
    db.refresh(rma, attribute_names=["status", "updated_at"])
    if new_status.value == expected:
        return new_status
    logger.info("RMA %s status %s -> %s (%s)", rma.rma_id, expected, new_status.value, action.value)
    return new_status

"""RMA status state machine.

One table maps every workflow action to the statuses it may start from and
the statuses it may end in. Orchestrators call :func:`assert_transition`
before doing any work and :func:`resolve_target` to pick the status they
persist; nothing else in the code base compares raw status strings to decide
whether an action is allowed.
"""
from enum import Enum
from typing import Dict, FrozenSet, NamedTuple, Optional, Set

from app.services.errors import InvalidTransitionError


class RmaStatus(str, Enum):
    STARTED = "STARTED"
    TROUBLESHOOTING_IN_PROGRESS = "TROUBLESHOOTING_IN_PROGRESS"
    TROUBLESHOOTING_COMPLETE = "TROUBLESHOOTING_COMPLETE"
    AWAITING_TERMS_ACCEPTANCE = "AWAITING_TERMS_ACCEPTANCE"
    AUTHORIZED = "AUTHORIZED"
    NEEDS_REVIEW = "NEEDS_REVIEW"
    DENIED = "DENIED"
    LABEL_OPTIONS_PRESENTED = "LABEL_OPTIONS_PRESENTED"
    AWAITING_CUSTOMER_SHIPMENT = "AWAITING_CUSTOMER_SHIPMENT"
    LABEL_ISSUED = "LABEL_ISSUED"
    TRACKING_RECORDED = "TRACKING_RECORDED"
    CLOSED_FIXED = "CLOSED_FIXED"


class RmaAction(str, Enum):
    RECORD_SYMPTOMS = "RECORD_SYMPTOMS"
    COMPLETE_STEP = "COMPLETE_STEP"
    FINISH_TROUBLESHOOTING = "FINISH_TROUBLESHOOTING"
    OPT_OUT = "OPT_OUT"
    UPLOAD_EVIDENCE = "UPLOAD_EVIDENCE"
    ACCEPT_TERMS = "ACCEPT_TERMS"
    AUTHORIZE = "AUTHORIZE"
    PRESENT_LABEL_OPTIONS = "PRESENT_LABEL_OPTIONS"
    PURCHASE_LABEL = "PURCHASE_LABEL"
    RECORD_SELF_SHIP = "RECORD_SELF_SHIP"
    CLOSE_FIXED = "CLOSE_FIXED"
    ADMIN_OVERRIDE = "ADMIN_OVERRIDE"


class Transition(NamedTuple):
    sources: FrozenSet[RmaStatus]
    # Empty means the action leaves the status unchanged
    targets: FrozenSet[RmaStatus]


S = RmaStatus
ALL_STATUSES = frozenset(RmaStatus)

# Terminal for the ordinary customer flow; only ADMIN_OVERRIDE leaves them.
TERMINAL_STATUSES = frozenset({S.DENIED, S.CLOSED_FIXED, S.LABEL_ISSUED, S.TRACKING_RECORDED})

# Statuses that do not count towards the repeat-RMA abuse signal.
REPEAT_EXCLUDED_STATUSES = frozenset({S.DENIED, S.CLOSED_FIXED})

_TROUBLESHOOTING_OPEN = frozenset({S.STARTED, S.TROUBLESHOOTING_IN_PROGRESS})
_PRE_AUTHORIZATION = frozenset({
    S.TROUBLESHOOTING_IN_PROGRESS,
    S.TROUBLESHOOTING_COMPLETE,
    S.AWAITING_TERMS_ACCEPTANCE,
})

TRANSITIONS: Dict[RmaAction, Transition] = {
    RmaAction.RECORD_SYMPTOMS: Transition(_TROUBLESHOOTING_OPEN, frozenset()),
    RmaAction.COMPLETE_STEP: Transition(_TROUBLESHOOTING_OPEN, frozenset({S.TROUBLESHOOTING_IN_PROGRESS})),
    RmaAction.FINISH_TROUBLESHOOTING: Transition(
        frozenset({S.TROUBLESHOOTING_IN_PROGRESS}), frozenset({S.TROUBLESHOOTING_COMPLETE})
    ),
    RmaAction.OPT_OUT: Transition(_TROUBLESHOOTING_OPEN, frozenset({S.TROUBLESHOOTING_COMPLETE})),
    RmaAction.UPLOAD_EVIDENCE: Transition(
        _TROUBLESHOOTING_OPEN | _PRE_AUTHORIZATION | {S.NEEDS_REVIEW}, frozenset()
    ),
    RmaAction.ACCEPT_TERMS: Transition(_PRE_AUTHORIZATION, frozenset({S.AWAITING_TERMS_ACCEPTANCE})),
    RmaAction.AUTHORIZE: Transition(
        frozenset({S.AWAITING_TERMS_ACCEPTANCE}),
        frozenset({S.AUTHORIZED, S.NEEDS_REVIEW, S.DENIED}),
    ),
    RmaAction.PRESENT_LABEL_OPTIONS: Transition(
        frozenset({S.AUTHORIZED, S.LABEL_OPTIONS_PRESENTED}),
        frozenset({S.LABEL_OPTIONS_PRESENTED, S.AWAITING_CUSTOMER_SHIPMENT}),
    ),
    RmaAction.PURCHASE_LABEL: Transition(
        frozenset({S.AUTHORIZED, S.LABEL_OPTIONS_PRESENTED}), frozenset({S.LABEL_ISSUED})
    ),
    RmaAction.RECORD_SELF_SHIP: Transition(
        frozenset({S.AUTHORIZED, S.LABEL_OPTIONS_PRESENTED, S.AWAITING_CUSTOMER_SHIPMENT}),
        frozenset({S.TRACKING_RECORDED}),
    ),
    RmaAction.CLOSE_FIXED: Transition(_PRE_AUTHORIZATION, frozenset({S.CLOSED_FIXED})),
    RmaAction.ADMIN_OVERRIDE: Transition(ALL_STATUSES, ALL_STATUSES),
}


def parse_status(value) -> RmaStatus:
    try:
        return RmaStatus(value)
    except ValueError:
        raise ValueError(f"Unknown RMA status: {value}")


def allowed_actions(status) -> Set[RmaAction]:
    status = parse_status(status)
    return {action for action, t in TRANSITIONS.items() if status in t.sources}


def can_transition(status, action: RmaAction) -> bool:
    try:
        return parse_status(status) in TRANSITIONS[action].sources
    except ValueError:
        return False


def assert_transition(status, action: RmaAction) -> None:
    """Raise InvalidTransitionError unless ``action`` may start from ``status``."""
    if not can_transition(status, action):
        raise InvalidTransitionError(str(getattr(status, "value", status)), action.value)


def resolve_target(status, action: RmaAction, target: Optional[RmaStatus] = None) -> RmaStatus:
    """Return the status to persist after ``action``.

    ``target`` picks among several legal destinations (authorization outcome,
    label options vs. self-ship). Actions with no destination keep ``status``.
    """
    assert_transition(status, action)
    current = parse_status(status)
    targets = TRANSITIONS[action].targets
    if not targets:
        return current
    if target is None:
        if len(targets) != 1:
            raise ValueError(f"{action.value} needs an explicit target status")
        return next(iter(targets))
    target = parse_status(target)
    if target not in targets:
        raise InvalidTransitionError(
            current.value, action.value, f"{action.value} cannot move {current.value} to {target.value}"
        )
    return target

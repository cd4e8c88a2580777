"""Authorization rules engine.

Rules are evaluated in declaration order and the first one that applies
decides the outcome. Each rule is a named predicate paired with the verdict
it produces, so a rule can be tested on its own or inserted at a specific
priority without touching the others.

The engine never writes anything. Its only outside read is the repeat-RMA
count, which is requested lazily so rules ahead of it short-circuit the query.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional, Sequence

from app.schemas.troubleshooting import TroubleshootingRecord

REPEAT_RMA_WINDOW_DAYS = 30


class Decision(str, Enum):
    AUTHORIZED = "AUTHORIZED"
    NEEDS_REVIEW = "NEEDS_REVIEW"
    # Only reachable through an administrative override today.
    DENIED = "DENIED"


class ReasonCode(str, Enum):
    OUT_OF_WARRANTY = "OUT_OF_WARRANTY"
    TERMS_NOT_ACCEPTED = "TERMS_NOT_ACCEPTED"
    OPTED_OUT_EARLY = "OPTED_OUT_EARLY"
    EVIDENCE_MISSING = "EVIDENCE_MISSING"
    REPEAT_RMA = "REPEAT_RMA"
    AUTO_APPROVED = "AUTO_APPROVED"


@dataclass(frozen=True)
class AuthorizationResult:
    decision: Decision
    reason_code: ReasonCode
    reason_message: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "decision": self.decision.value,
            "reasonCode": self.reason_code.value,
            "reasonMessage": self.reason_message,
        }


# (order_id, order_item_id, since) -> number of other non-terminal RMAs
RepeatCounter = Callable[[str, str, datetime], int]


@dataclass
class RuleContext:
    rma: object
    troubleshooting: Optional[TroubleshootingRecord]
    count_repeats: RepeatCounter
    now: datetime
    window_days: int = REPEAT_RMA_WINDOW_DAYS
    _repeat_count: Optional[int] = field(default=None, repr=False)

    @property
    def cutoff(self) -> datetime:
        return self.now - timedelta(days=self.window_days)

    @property
    def repeat_count(self) -> int:
        if self._repeat_count is None:
            self._repeat_count = int(self.count_repeats(self.rma.order_id, self.rma.order_item_id, self.cutoff) or 0)
        return self._repeat_count


@dataclass(frozen=True)
class AuthorizationRule:
    name: str
    applies: Callable[[RuleContext], bool]
    verdict: Callable[[RuleContext], AuthorizationResult]


def _evidence_missing(ctx: RuleContext) -> bool:
    ts = ctx.troubleshooting
    if ts is None or not ts.stepsCompleted:
        return False
    return any(s.requiresEvidence for s in ts.stepsCompleted) and not ts.evidence


RULES: Sequence[AuthorizationRule] = (
    AuthorizationRule(
        name="warranty_gate",
        applies=lambda ctx: not ctx.rma.warranty_eligible,
        verdict=lambda ctx: AuthorizationResult(
            Decision.AUTHORIZED,
            ReasonCode.OUT_OF_WARRANTY,
            "Out of warranty - authorized as paid evaluation",
        ),
    ),
    AuthorizationRule(
        name="terms_gate",
        applies=lambda ctx: not ctx.rma.accepted_bench_fee_terms,
        verdict=lambda ctx: AuthorizationResult(
            Decision.NEEDS_REVIEW,
            ReasonCode.TERMS_NOT_ACCEPTED,
            "Terms acceptance required",
        ),
    ),
    AuthorizationRule(
        name="opted_out_early",
        applies=lambda ctx: ctx.troubleshooting is not None and ctx.troubleshooting.customerOptedOutOfTS,
        verdict=lambda ctx: AuthorizationResult(
            Decision.NEEDS_REVIEW,
            ReasonCode.OPTED_OUT_EARLY,
            "Customer opted out of troubleshooting early",
        ),
    ),
    AuthorizationRule(
        name="evidence_required",
        applies=_evidence_missing,
        verdict=lambda ctx: AuthorizationResult(
            Decision.NEEDS_REVIEW,
            ReasonCode.EVIDENCE_MISSING,
            "Evidence required but not provided",
        ),
    ),
    AuthorizationRule(
        name="repeat_rma",
        applies=lambda ctx: ctx.repeat_count > 0,
        verdict=lambda ctx: AuthorizationResult(
            Decision.NEEDS_REVIEW,
            ReasonCode.REPEAT_RMA,
            f"Multiple RMAs detected ({ctx.repeat_count} in last {ctx.window_days} days)",
        ),
    ),
)

DEFAULT_RESULT = AuthorizationResult(Decision.AUTHORIZED, ReasonCode.AUTO_APPROVED)


def evaluate_authorization(
    rma,
    troubleshooting: Optional[TroubleshootingRecord],
    count_repeats: RepeatCounter,
    now: Optional[datetime] = None,
    window_days: int = REPEAT_RMA_WINDOW_DAYS,
    rules: Sequence[AuthorizationRule] = RULES,
) -> AuthorizationResult:
    """Return the first matching rule's verdict, or AUTO_APPROVED.

    ``rma`` needs ``warranty_eligible``, ``accepted_bench_fee_terms``,
    ``order_id`` and ``order_item_id``. ``troubleshooting`` may be None; the
    opt-out and evidence rules are then skipped.
    """
    ctx = RuleContext(
        rma=rma,
        troubleshooting=troubleshooting,
        count_repeats=count_repeats,
        now=now or datetime.utcnow(),
        window_days=window_days,
    )
    for rule in rules:
        if rule.applies(ctx):
            return rule.verdict(ctx)
    return DEFAULT_RESULT

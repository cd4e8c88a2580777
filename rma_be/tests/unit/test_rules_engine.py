from datetime import datetime, timedelta
from itertools import product
from types import SimpleNamespace

import pytest

from app.schemas.troubleshooting import CompletedStep, EvidenceRecord, TroubleshootingRecord
from app.services.rules_engine import (
    RULES,
    AuthorizationResult,
    AuthorizationRule,
    Decision,
    ReasonCode,
    evaluate_authorization,
)

NOW = datetime(2026, 3, 15, 12, 0, 0)


def make_rma(warranty_eligible=True, accepted_terms=True):
    return SimpleNamespace(
        rma_id="rma-1",
        order_id="ORD-1",
        order_item_id="OI-1",
        warranty_eligible=warranty_eligible,
        accepted_bench_fee_terms=accepted_terms,
    )


def make_ts(opted_out=False, requires_evidence=False, evidence_count=0, steps=True):
    completed = [CompletedStep(stepId="A", answer="pass", requiresEvidence=requires_evidence)] if steps else []
    evidence = [
        EvidenceRecord(
            evidenceId=f"ev-{i}",
            fileName="photo.jpg",
            filePath="/tmp/photo.jpg",
            fileSize=10,
            uploadedAt=NOW,
        )
        for i in range(evidence_count)
    ]
    return TroubleshootingRecord(stepsCompleted=completed, evidence=evidence, customerOptedOutOfTS=opted_out)


class Counter:
    def __init__(self, count=0):
        self.count = count
        self.calls = []

    def __call__(self, order_id, order_item_id, since):
        self.calls.append((order_id, order_item_id, since))
        return self.count


class TestRuleOrder:

    @pytest.mark.parametrize("terms,opted_out,requires_evidence", list(product([True, False], repeat=3)))
    def test_out_of_warranty_is_always_authorized(self, terms, opted_out, requires_evidence):
        counter = Counter(5)
        result = evaluate_authorization(
            make_rma(warranty_eligible=False, accepted_terms=terms),
            make_ts(opted_out=opted_out, requires_evidence=requires_evidence),
            counter,
            now=NOW,
        )
        assert result.decision == Decision.AUTHORIZED
        assert result.reason_code == ReasonCode.OUT_OF_WARRANTY
        assert counter.calls == []

    @pytest.mark.parametrize("opted_out,requires_evidence", list(product([True, False], repeat=2)))
    def test_missing_terms_stops_evaluation(self, opted_out, requires_evidence):
        counter = Counter(3)
        result = evaluate_authorization(
            make_rma(accepted_terms=False),
            make_ts(opted_out=opted_out, requires_evidence=requires_evidence),
            counter,
            now=NOW,
        )
        assert (result.decision, result.reason_code) == (Decision.NEEDS_REVIEW, ReasonCode.TERMS_NOT_ACCEPTED)
        assert counter.calls == []

    def test_opt_out_wins_over_missing_evidence(self):
        result = evaluate_authorization(make_rma(), make_ts(opted_out=True, requires_evidence=True), Counter(), now=NOW)
        assert result.reason_code == ReasonCode.OPTED_OUT_EARLY
        assert result.decision == Decision.NEEDS_REVIEW


class TestEvidenceRule:

    def test_required_evidence_missing(self):
        counter = Counter()
        result = evaluate_authorization(make_rma(), make_ts(requires_evidence=True), counter, now=NOW)
        assert (result.decision, result.reason_code) == (Decision.NEEDS_REVIEW, ReasonCode.EVIDENCE_MISSING)
        assert counter.calls == []

    def test_evidence_present_falls_through_to_auto_approval(self):
        counter = Counter(0)
        result = evaluate_authorization(
            make_rma(), make_ts(requires_evidence=True, evidence_count=1), counter, now=NOW
        )
        assert (result.decision, result.reason_code) == (Decision.AUTHORIZED, ReasonCode.AUTO_APPROVED)
        assert len(counter.calls) == 1

    def test_no_completed_steps_skips_the_rule(self):
        result = evaluate_authorization(make_rma(), make_ts(steps=False), Counter(), now=NOW)
        assert result.reason_code == ReasonCode.AUTO_APPROVED

    def test_uses_the_snapshot_flag_on_the_completed_step(self):
        # Snapshot says no evidence was required, whatever the playbook says today
        result = evaluate_authorization(make_rma(), make_ts(requires_evidence=False), Counter(), now=NOW)
        assert result.reason_code == ReasonCode.AUTO_APPROVED

    def test_without_troubleshooting_data_rules_three_and_four_are_skipped(self):
        result = evaluate_authorization(make_rma(), None, Counter(), now=NOW)
        assert result.reason_code == ReasonCode.AUTO_APPROVED


class TestRepeatRule:

    def test_repeat_count_triggers_review(self):
        result = evaluate_authorization(make_rma(), make_ts(), Counter(2), now=NOW)
        assert (result.decision, result.reason_code) == (Decision.NEEDS_REVIEW, ReasonCode.REPEAT_RMA)
        assert "2" in result.reason_message
        assert "30 days" in result.reason_message

    def test_window_is_thirty_days_before_now(self):
        counter = Counter()
        evaluate_authorization(make_rma(), make_ts(), counter, now=NOW)
        assert counter.calls == [("ORD-1", "OI-1", NOW - timedelta(days=30))]

    def test_window_is_configurable(self):
        counter = Counter(1)
        result = evaluate_authorization(make_rma(), make_ts(), counter, now=NOW, window_days=7)
        assert counter.calls[0][2] == NOW - timedelta(days=7)
        assert "7 days" in result.reason_message


class TestDecisionSpace:

    def test_denied_is_never_produced_automatically(self):
        for warranty, terms, opted_out, req, ev, count in product(
            [True, False], [True, False], [True, False], [True, False], [0, 1], [0, 3]
        ):
            result = evaluate_authorization(
                make_rma(warranty, terms),
                make_ts(opted_out=opted_out, requires_evidence=req, evidence_count=ev),
                Counter(count),
                now=NOW,
            )
            assert result.decision != Decision.DENIED

    def test_rules_can_be_extended_in_priority_order(self):
        blocked = AuthorizationRule(
            name="blocked_order",
            applies=lambda ctx: ctx.rma.order_id == "ORD-1",
            verdict=lambda ctx: AuthorizationResult(Decision.DENIED, ReasonCode.REPEAT_RMA, "blocked"),
        )
        result = evaluate_authorization(make_rma(), make_ts(), Counter(), now=NOW, rules=(blocked,) + tuple(RULES))
        assert result.decision == Decision.DENIED

    def test_as_dict_uses_wire_names(self):
        result = evaluate_authorization(make_rma(), make_ts(), Counter(), now=NOW)
        assert result.as_dict() == {"decision": "AUTHORIZED", "reasonCode": "AUTO_APPROVED", "reasonMessage": None}

import pytest

from app.schemas.playbook import Playbook
from app.schemas.troubleshooting import CompletedStep
from app.services.errors import MalformedDataError
from app.services.playbook_engine import (
    is_playbook_complete,
    next_step,
    parse_playbook,
    validate_playbook_integrity,
)


def build(*steps):
    return Playbook.model_validate({"steps": list(steps)})


LINEAR = build(
    {"id": "A", "title": "Step A"},
    {"id": "B", "title": "Step B"},
    {"id": "C", "title": "Step C"},
)

BRANCHED = build(
    {
        "id": "A",
        "title": "Power on",
        "requiresEvidence": True,
        "branching": [
            {"condition": "pass", "nextStepId": "C"},
            {"condition": "fail", "end": True},
        ],
    },
    {"id": "B", "title": "Reseat connector"},
    {"id": "C", "title": "Run self test"},
)


class TestNextStep:

    def test_entry_point_is_first_step(self):
        assert next_step(LINEAR, None).id == "A"
        assert next_step(BRANCHED, "").id == "A"

    def test_empty_playbook_has_no_steps(self):
        assert next_step(Playbook(), None) is None

    def test_unknown_step_ends_the_flow(self):
        assert next_step(LINEAR, "Z") is None

    def test_positional_default(self):
        assert next_step(LINEAR, "A").id == "B"
        assert next_step(LINEAR, "B").id == "C"

    def test_last_step_without_branches_returns_none(self):
        assert next_step(LINEAR, "C", answers={"C": "pass"}) is None

    def test_matching_branch_jumps(self):
        assert next_step(BRANCHED, "A", answers={"A": "pass"}).id == "C"

    def test_end_branch_terminates_despite_remaining_steps(self):
        assert next_step(BRANCHED, "A", answers={"A": "fail"}) is None

    def test_unmatched_answer_falls_back_to_order(self):
        assert next_step(BRANCHED, "A", answers={"A": "maybe"}).id == "B"

    def test_branches_ignored_without_an_answer_for_the_step(self):
        assert next_step(BRANCHED, "A").id == "B"
        assert next_step(BRANCHED, "A", answers={"B": "fail"}).id == "B"

    def test_first_matching_branch_wins(self):
        playbook = build(
            {
                "id": "A",
                "title": "A",
                "branching": [
                    {"condition": "fail", "nextStepId": "C"},
                    {"condition": "fail", "end": True},
                ],
            },
            {"id": "B", "title": "B"},
            {"id": "C", "title": "C"},
        )
        assert next_step(playbook, "A", answers={"A": "fail"}).id == "C"

    def test_dangling_next_step_id_returns_none(self):
        playbook = build(
            {"id": "A", "title": "A", "branching": [{"condition": "pass", "nextStepId": "GONE"}]},
            {"id": "B", "title": "B"},
        )
        assert next_step(playbook, "A", answers={"A": "pass"}) is None

    def test_branch_without_target_keeps_scanning(self):
        playbook = build(
            {
                "id": "A",
                "title": "A",
                "branching": [
                    {"condition": "pass"},
                    {"condition": "pass", "nextStepId": "C"},
                ],
            },
            {"id": "B", "title": "B"},
            {"id": "C", "title": "C"},
        )
        assert next_step(playbook, "A", answers={"A": "pass"}).id == "C"


class TestIsComplete:

    def test_empty_playbook_is_complete(self):
        assert is_playbook_complete(Playbook(), [])

    def test_full_coverage_required(self):
        assert not is_playbook_complete(LINEAR, [{"stepId": "A"}, {"stepId": "B"}])
        assert is_playbook_complete(LINEAR, [{"stepId": "A"}, {"stepId": "B"}, {"stepId": "C"}])

    def test_duplicates_do_not_change_the_result(self):
        done = [CompletedStep(stepId="A"), CompletedStep(stepId="B")]
        assert is_playbook_complete(LINEAR, done) == is_playbook_complete(LINEAR, done + [CompletedStep(stepId="A")])
        full = done + [CompletedStep(stepId="C")]
        assert is_playbook_complete(LINEAR, full) == is_playbook_complete(LINEAR, full + full)

    def test_order_is_irrelevant(self):
        assert is_playbook_complete(LINEAR, [{"stepId": "C"}, {"stepId": "A"}, {"stepId": "B"}])


class TestEndBranchVersusCompletion:
    """A branch ``end`` stops the interactive flow but does not complete the playbook."""

    def test_flow_ended_but_incomplete(self):
        completed = [CompletedStep(stepId="A", answer="fail", requiresEvidence=True)]
        assert next_step(BRANCHED, "A", completed, {"A": "fail"}) is None
        assert not is_playbook_complete(BRANCHED, completed)

    def test_skipping_via_branch_leaves_playbook_incomplete(self):
        completed = [CompletedStep(stepId="A", answer="pass"), CompletedStep(stepId="C", answer="pass")]
        assert next_step(BRANCHED, "C", completed, {"A": "pass", "C": "pass"}) is None
        assert not is_playbook_complete(BRANCHED, completed)

    def test_visiting_every_step_completes(self):
        completed = [CompletedStep(stepId=s) for s in ("A", "B", "C")]
        assert is_playbook_complete(BRANCHED, completed)


class TestIntegrity:

    def test_sound_playbook_has_no_problems(self):
        assert validate_playbook_integrity(BRANCHED) == []

    def test_duplicate_ids_reported(self):
        problems = validate_playbook_integrity(build({"id": "A", "title": "1"}, {"id": "A", "title": "2"}))
        assert problems == ["Duplicate step id: A"]

    def test_unknown_next_step_reported(self):
        playbook = build({"id": "A", "title": "A", "branching": [{"condition": "pass", "nextStepId": "Z"}]})
        assert validate_playbook_integrity(playbook) == ["Step A: unknown nextStepId Z"]

    def test_branch_needs_target_or_end(self):
        playbook = build({"id": "A", "title": "A", "branching": [{"condition": "fail"}]})
        assert len(validate_playbook_integrity(playbook)) == 1


class TestParsePlaybook:

    def test_metadata_attached(self):
        playbook = parse_playbook({"steps": [{"id": "A", "title": "A"}]}, name="AIRBAG", version=3)
        assert playbook.metadata.name == "AIRBAG"
        assert playbook.metadata.version == 3

    def test_malformed_blob_raises(self):
        with pytest.raises(MalformedDataError):
            parse_playbook({"steps": [{"title": "no id"}]}, name="AIRBAG", version=1)

    def test_unknown_branch_condition_is_malformed(self):
        with pytest.raises(MalformedDataError):
            parse_playbook({"steps": [{"id": "A", "title": "A", "branching": [{"condition": "maybe"}]}]})
